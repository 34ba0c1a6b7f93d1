from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_service.application.exceptions import DataFetchError
from crm_service.infrastructure.db.repositories.group import GroupReaderRepo, GroupWriterRepo
from crm_service.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from crm_service.infrastructure.db.repositories.outbox import OutboxWriterRepo
from crm_service.infrastructure.db.repositories.profile import ProfileReaderRepo
from crm_service.infrastructure.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)


class SqlAlchemyDataStore:
    """Concrete unit of work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.profiles = ProfileReaderRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.groups = GroupReaderRepo(session)
        self.groups_w = GroupWriterRepo(session)
        self.outbox = OutboxWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            return
        try:
            await self.rollback()
        except (SQLAlchemyError, OSError):
            logger.warning("Rollback failed", exc_info=True)
        if isinstance(exc_val, (SQLAlchemyError, OSError)):
            raise DataFetchError(str(exc_val)) from exc_val


@asynccontextmanager
async def open_store() -> AsyncIterator[SqlAlchemyDataStore]:
    async with AsyncSessionLocal() as session:
        async with SqlAlchemyDataStore(session) as store:
            yield store
