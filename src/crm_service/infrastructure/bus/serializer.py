from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from crm_service.domain.entities.message import Message


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]


def message_from_payload(data: dict[str, Any]) -> Message:
    """Rebuild a message row from a ``messages.insert`` payload."""
    group_id = data.get("group_id")
    return Message(
        id=UUID(str(data["id"])),
        sender_id=str(data["sender_id"]),
        receiver_id=data.get("receiver_id"),
        group_id=UUID(str(group_id)) if group_id else None,
        content=data["content"],
        created_at=datetime.fromisoformat(data["created_at"]),
        read=bool(data.get("read", False)),
    )
