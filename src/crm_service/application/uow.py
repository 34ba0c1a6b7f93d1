from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from crm_service.application.repositories.group import GroupReader, GroupWriter
from crm_service.application.repositories.message import MessageReader, MessageWriter
from crm_service.application.repositories.outbox import OutboxWriter
from crm_service.application.repositories.profile import ProfileReader


class DataStore(Protocol):
    """Unit of work over the backing store.

    Failures surface as ``DataFetchError`` when the unit of work exits.
    """

    profiles: ProfileReader
    messages: MessageReader
    messages_w: MessageWriter
    groups: GroupReader
    groups_w: GroupWriter
    outbox: OutboxWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


StoreFactory = Callable[[], AbstractAsyncContextManager[DataStore]]
