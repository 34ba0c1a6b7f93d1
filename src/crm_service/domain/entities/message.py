from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    sender_id: str
    receiver_id: str | None
    group_id: UUID | None
    content: str
    created_at: datetime
    read: bool = False

    def __post_init__(self) -> None:
        # exactly one addressee
        if (self.receiver_id is None) == (self.group_id is None):
            raise ValueError("Message must have either receiver_id or group_id")

    @property
    def is_group(self) -> bool:
        return self.group_id is not None
