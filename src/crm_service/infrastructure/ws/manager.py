"""In-process registry of connected clients and their chat state."""
from __future__ import annotations

import logging
from typing import Callable

from fastapi import WebSocket

from crm_service.domain.entities.message import Message
from crm_service.infrastructure.ws.protocol import WsOutbound
from crm_service.services.chat_sync import ChatSynchronizer

logger = logging.getLogger(__name__)

StateRenderer = Callable[[ChatSynchronizer], list[WsOutbound]]


class ConnectionManager:
    """Tracks sockets per principal, each with its own ``ChatSynchronizer``."""

    def __init__(self, render: StateRenderer) -> None:
        self._render = render
        self._connections: dict[str, set[WebSocket]] = {}
        self._chats: dict[WebSocket, ChatSynchronizer] = {}

    async def connect(self, ws: WebSocket, principal_id: str, chat: ChatSynchronizer) -> None:
        await ws.accept()
        self._connections.setdefault(principal_id, set()).add(ws)
        self._chats[ws] = chat
        logger.debug("WS connected: %s (total=%d)", principal_id, len(self._connections))

    def disconnect(self, ws: WebSocket, principal_id: str) -> None:
        conns = self._connections.get(principal_id)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[principal_id]
        self._chats.pop(ws, None)
        logger.debug("WS disconnected: %s", principal_id)

    def is_online(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    async def send(self, ws: WebSocket, event: WsOutbound) -> None:
        await ws.send_text(event.model_dump_json())

    async def push_state(self, ws: WebSocket) -> None:
        chat = self._chats.get(ws)
        if chat is None:
            return
        for event in self._render(chat):
            await self.send(ws, event)

    async def dispatch_inserted(self, message: Message) -> None:
        """Feed a message insert to every connected chat and push its new state."""
        dead: list[tuple[str, WebSocket]] = []
        for ws, chat in list(self._chats.items()):
            try:
                if not await chat.handle_inserted(message):
                    continue
                await self.push_state(ws)
            except Exception:
                dead.append((chat.principal.id, ws))
        for principal_id, ws in dead:
            self.disconnect(ws, principal_id)
