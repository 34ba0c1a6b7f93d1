from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    INTERN = "intern"
    CLIENT = "client"


class Action(StrEnum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class GroupMemberRole(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class MessageState(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


class GuardState(StrEnum):
    LOADING = "loading"
    DENIED = "denied"
    ALLOWED = "allowed"
