from __future__ import annotations

from typing import Protocol

from crm_service.domain.entities.profile import Profile


class ProfileReader(Protocol):
    async def get_by_user_id(self, user_id: str) -> Profile | None: ...

    async def list_except(self, user_id: str) -> list[Profile]:
        """All profiles other than ``user_id``."""
        ...

    async def list_by_user_ids(self, user_ids: list[str]) -> list[Profile]: ...
