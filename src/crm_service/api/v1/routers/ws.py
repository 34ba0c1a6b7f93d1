from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from crm_service.api.deps import EngineDep, StoreFactoryDep, get_verifier
from crm_service.api.v1.schemas.chat import ContactResponse, GroupSummaryResponse, MessageResponse
from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AuthenticationError
from crm_service.application.policies.permissions import PermissionEngine
from crm_service.application.ports.auth import TokenVerifier
from crm_service.config import settings
from crm_service.domain.value_objects.enums import Action, Role
from crm_service.infrastructure.ws.manager import ConnectionManager
from crm_service.infrastructure.ws.protocol import WsInbound, WsOutbound
from crm_service.services.chat_sync import ChatSynchronizer
from crm_service.services.role_resolver import resolve_role

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

# (module, action) each operation requires; absent ops need none
OP_PERMISSIONS: dict[str, tuple[str, Action]] = {
    "contacts.list": ("messages", Action.READ),
    "conversation.open": ("messages", Action.READ),
    "message.send": ("messages", Action.CREATE),
    "groups.list": ("groups", Action.READ),
    "group.create": ("groups", Action.CREATE),
}


def render_state(chat: ChatSynchronizer) -> list[WsOutbound]:
    """Full snapshot of a synchronizer's visible state."""
    selected = chat.selected
    return [
        WsOutbound(
            type="contacts",
            data={"items": [ContactResponse.from_summary(c).model_dump(mode="json") for c in chat.contacts]},
        ),
        WsOutbound(
            type="groups",
            data={"items": [GroupSummaryResponse.from_summary(g).model_dump(mode="json") for g in chat.groups]},
        ),
        WsOutbound(
            type="messages",
            data={
                "conversation": selected.key if selected else None,
                "items": [MessageResponse.from_view(v).model_dump(mode="json") for v in chat.messages],
            },
        ),
        WsOutbound(type="unread_counts", data={"counts": dict(chat.unread_counts)}),
    ]


manager = ConnectionManager(render=render_state)


def get_manager() -> ConnectionManager:
    return manager


class WsNotifier:
    """Delivers notifications to one socket as ``notification`` events."""

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws

    async def success(self, text: str) -> None:
        await manager.send(self._ws, WsOutbound(type="notification", data={"level": "success", "text": text}))

    async def error(self, text: str) -> None:
        await manager.send(self._ws, WsOutbound(type="notification", data={"level": "error", "text": text}))


async def _authenticate(verifier: TokenVerifier, token: str) -> Principal | None:
    try:
        return await verifier.verify(token)
    except AuthenticationError:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
    open_store: StoreFactoryDep,
    engine: EngineDep,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(verifier, token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    role = await resolve_role(principal, open_store)
    if not engine.has_permission(role, "messages", Action.READ):
        await websocket.close(code=4003, reason="Forbidden")
        return

    chat = ChatSynchronizer(
        principal,
        open_store,
        WsNotifier(websocket),
        is_online=manager.is_online,
    )
    await manager.connect(websocket, principal.id, chat)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{principal.id}",
    )
    try:
        await chat.load()
        await manager.push_state(websocket)
        await _read_loop(websocket, chat, role, engine)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.id)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket, principal.id)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await manager.send(ws, WsOutbound(type="pong"))
    except asyncio.CancelledError:
        pass
    except Exception:  # noqa: BLE001
        logger.debug("WS heartbeat stopped", exc_info=True)


async def _read_loop(
    ws: WebSocket,
    chat: ChatSynchronizer,
    role: Role | None,
    engine: PermissionEngine,
) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await manager.send(ws, WsOutbound(type="error", data={"code": "invalid_payload"}))
            continue

        if msg.type == "ping":
            await manager.send(ws, WsOutbound(type="pong"))
            continue

        required = OP_PERMISSIONS.get(msg.type)
        if required is not None and not engine.has_permission(role, *required):
            logger.info("WS op %s denied for role %s", msg.type, role)
            await manager.send(
                ws, WsOutbound(type="error", data={"code": "forbidden", "type": msg.type}),
            )
            continue

        try:
            handled = await _handle(chat, msg.type, msg.data)
        except (KeyError, TypeError, ValueError) as exc:
            await manager.send(
                ws, WsOutbound(type="error", data={"code": "invalid_data", "detail": str(exc)}),
            )
            continue

        if not handled:
            await manager.send(
                ws, WsOutbound(type="error", data={"code": "unknown_type", "type": msg.type}),
            )
            continue
        await manager.push_state(ws)


async def _handle(chat: ChatSynchronizer, op: str, data: dict[str, Any]) -> bool:
    if op == "contacts.list":
        await chat.list_contacts()
    elif op == "groups.list":
        await chat.list_groups()
    elif op == "conversation.open":
        await chat.open_conversation(str(data["conversation_id"]), bool(data.get("is_group", False)))
    elif op == "conversation.close":
        chat.select(None)
    elif op == "message.send":
        await chat.send_message(str(data["content"]))
    elif op == "group.create":
        await chat.create_group(
            str(data["name"]),
            data.get("description"),
            [str(m) for m in data.get("member_ids", [])],
        )
    else:
        return False
    return True
