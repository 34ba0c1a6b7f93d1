from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_service.application.exceptions import ConflictError, DataFetchError
from crm_service.domain.entities.group import Group, GroupMember
from crm_service.infrastructure.db.mappers import group as mapper
from crm_service.infrastructure.db.models.group import GroupMemberModel, GroupModel


class GroupReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, group_id: UUID) -> Group | None:
        model = await self._session.get(GroupModel, group_id)
        return mapper.model_to_entity(model) if model else None

    async def list_for_member(self, user_id: str) -> list[Group]:
        stmt = (
            select(GroupModel)
            .join(GroupMemberModel, GroupMemberModel.group_id == GroupModel.id)
            .where(GroupMemberModel.user_id == user_id)
            .order_by(GroupModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_members(self, group_id: UUID) -> list[GroupMember]:
        stmt = (
            select(GroupMemberModel)
            .where(GroupMemberModel.group_id == group_id)
            .order_by(GroupMemberModel.joined_at.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.member_to_entity(m) for m in result.scalars().all()]

    async def is_member(self, group_id: UUID, user_id: str) -> bool:
        stmt = (
            select(GroupMemberModel.id)
            .where(
                GroupMemberModel.group_id == group_id,
                GroupMemberModel.user_id == user_id,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None


class GroupWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, group: Group) -> Group:
        model = mapper.entity_to_model(group)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def add_member(self, member: GroupMember) -> None:
        # savepoint: a failed insert must not abort the outer transaction
        try:
            async with self._session.begin_nested():
                self._session.add(mapper.member_to_model(member))
        except IntegrityError as exc:
            raise ConflictError(f"User {member.user_id} is already a member") from exc
        except SQLAlchemyError as exc:
            raise DataFetchError(str(exc)) from exc

    async def remove_member(self, group_id: UUID, user_id: str) -> bool:
        stmt = delete(GroupMemberModel).where(
            GroupMemberModel.group_id == group_id,
            GroupMemberModel.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0
