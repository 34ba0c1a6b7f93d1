from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_service.domain.entities.profile import Profile
from crm_service.infrastructure.db.mappers import profile as mapper
from crm_service.infrastructure.db.models.profile import ProfileModel


class ProfileReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_user_id(self, user_id: str) -> Profile | None:
        stmt = select(ProfileModel).where(ProfileModel.user_id == user_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def list_except(self, user_id: str) -> list[Profile]:
        stmt = (
            select(ProfileModel)
            .where(ProfileModel.user_id != user_id)
            .order_by(ProfileModel.full_name.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_by_user_ids(self, user_ids: list[str]) -> list[Profile]:
        if not user_ids:
            return []
        stmt = select(ProfileModel).where(ProfileModel.user_id.in_(user_ids))
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]
