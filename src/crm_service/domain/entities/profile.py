from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Profile:
    id: UUID
    user_id: str
    full_name: str
    email: str | None
    role: str
    avatar_url: str | None
    created_at: datetime
