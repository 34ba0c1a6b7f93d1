from __future__ import annotations

from typing import Protocol
from uuid import UUID

from crm_service.domain.entities.group import Group, GroupMember


class GroupReader(Protocol):
    async def get_by_id(self, group_id: UUID) -> Group | None: ...

    async def list_for_member(self, user_id: str) -> list[Group]: ...

    async def list_members(self, group_id: UUID) -> list[GroupMember]: ...

    async def is_member(self, group_id: UUID, user_id: str) -> bool: ...


class GroupWriter(Protocol):
    async def create(self, group: Group) -> Group: ...

    async def add_member(self, member: GroupMember) -> None:
        """Insert a membership row.

        Raises ``ConflictError`` if the user is already a member. A failed
        insert never aborts the surrounding unit of work.
        """
        ...

    async def remove_member(self, group_id: UUID, user_id: str) -> bool:
        """Return False if there was no such membership."""
        ...
