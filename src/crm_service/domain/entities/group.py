from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Group:
    id: UUID
    name: str
    description: str | None
    created_by: str
    created_at: datetime
    avatar_url: str | None = None


@dataclass(frozen=True, slots=True)
class GroupMember:
    id: UUID
    group_id: UUID
    user_id: str
    role: str
    joined_at: datetime
