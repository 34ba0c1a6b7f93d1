"""WebSocket message envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """Client → Server."""

    # ping | contacts.list | groups.list | conversation.open |
    # conversation.close | message.send | group.create
    type: str
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    # contacts | groups | messages | unread_counts | notification | error | pong
    type: str
    data: dict[str, Any] = {}
