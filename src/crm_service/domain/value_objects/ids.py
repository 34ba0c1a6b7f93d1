from __future__ import annotations

from typing import NewType
from uuid import UUID

UserId = NewType("UserId", str)
GroupId = NewType("GroupId", UUID)
MessageId = NewType("MessageId", UUID)

GROUP_KEY_PREFIX = "group-"


def conversation_key(conversation_id: str | UUID, is_group: bool) -> str:
    """Key used to index unread counters: a user id, or ``group-<id>``."""
    if is_group:
        return f"{GROUP_KEY_PREFIX}{conversation_id}"
    return str(conversation_id)
