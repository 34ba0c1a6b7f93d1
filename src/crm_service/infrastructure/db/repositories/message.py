from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crm_service.domain.entities.message import Message
from crm_service.infrastructure.db.mappers import message as mapper
from crm_service.infrastructure.db.models.message import MessageModel


def _between(user_a: str, user_b: str):
    return or_(
        and_(MessageModel.sender_id == user_a, MessageModel.receiver_id == user_b),
        and_(MessageModel.sender_id == user_b, MessageModel.receiver_id == user_a),
    )


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_direct(self, user_a: str, user_b: str) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(_between(user_a, user_b))
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_group(self, group_id: UUID) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.group_id == group_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def last_direct(self, user_a: str, user_b: str) -> Message | None:
        stmt = (
            select(MessageModel)
            .where(_between(user_a, user_b))
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def last_group(self, group_id: UUID) -> Message | None:
        stmt = (
            select(MessageModel)
            .where(MessageModel.group_id == group_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def count_unread_direct(self, sender_id: str, receiver_id: str) -> int:
        stmt = select(func.count(MessageModel.id)).where(
            MessageModel.sender_id == sender_id,
            MessageModel.receiver_id == receiver_id,
            MessageModel.read.is_(False),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def count_unread_group(self, group_id: UUID, reader_id: str) -> int:
        stmt = select(func.count(MessageModel.id)).where(
            MessageModel.group_id == group_id,
            MessageModel.sender_id != reader_id,
            MessageModel.read.is_(False),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: Message) -> Message:
        model = mapper.entity_to_model(message)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read(self, message_ids: list[UUID]) -> None:
        if not message_ids:
            return
        # read only ever flips false -> true
        stmt = (
            update(MessageModel)
            .where(MessageModel.id.in_(message_ids), MessageModel.read.is_(False))
            .values(read=True)
        )
        await self._session.execute(stmt)
