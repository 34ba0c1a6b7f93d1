from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from crm_service.domain.entities.message import Message

MESSAGE_INSERTED = "messages.insert"

MessageInsertedHandler = Callable[[Message], Awaitable[None]]


class EventPublisher(Protocol):
    async def publish(self, channel: str, event_type: str, payload: dict[str, Any]) -> None: ...
