from __future__ import annotations

from typing import Protocol
from uuid import UUID

from crm_service.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_direct(self, user_a: str, user_b: str) -> list[Message]:
        """Messages exchanged in either direction, oldest first."""
        ...

    async def list_group(self, group_id: UUID) -> list[Message]: ...

    async def last_direct(self, user_a: str, user_b: str) -> Message | None: ...

    async def last_group(self, group_id: UUID) -> Message | None: ...

    async def count_unread_direct(self, sender_id: str, receiver_id: str) -> int: ...

    async def count_unread_group(self, group_id: UUID, reader_id: str) -> int:
        """Unread group messages not authored by ``reader_id``."""
        ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message: ...

    async def mark_read(self, message_ids: list[UUID]) -> None: ...
