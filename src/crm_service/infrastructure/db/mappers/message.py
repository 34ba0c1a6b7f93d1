from __future__ import annotations

from crm_service.domain.entities.message import Message
from crm_service.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        group_id=model.group_id,
        content=model.content,
        created_at=model.created_at,
        read=model.read,
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        id=entity.id,
        sender_id=entity.sender_id,
        receiver_id=entity.receiver_id,
        group_id=entity.group_id,
        content=entity.content,
        created_at=entity.created_at,
        read=entity.read,
    )
