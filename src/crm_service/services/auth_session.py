from __future__ import annotations

import asyncio
import logging
from typing import Callable

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AuthenticationError
from crm_service.application.policies.permissions import PermissionEngine
from crm_service.application.ports.auth import SessionProvider
from crm_service.application.ports.notifier import Notifier
from crm_service.application.uow import StoreFactory
from crm_service.domain.value_objects.enums import Role
from crm_service.services.role_resolver import resolve_role

logger = logging.getLogger(__name__)


class AuthSession:
    """Current principal, its role and whether they are still resolving."""

    def __init__(
        self,
        provider: SessionProvider,
        open_store: StoreFactory,
        notifier: Notifier,
        engine: PermissionEngine,
    ) -> None:
        self._provider = provider
        self._open_store = open_store
        self._notifier = notifier
        self._engine = engine
        self._settled = asyncio.Event()
        self._unsubscribe: Callable[[], None] | None = None

        self.principal: Principal | None = None
        self.role: Role | None = None
        self.loading = True

    async def initialize(self) -> None:
        self._begin()
        try:
            principal = await self._provider.current()
        except AuthenticationError:
            logger.exception("Error initializing auth")
            principal = None
        await self._apply(principal)
        self._unsubscribe = self._provider.subscribe(self._on_change)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def wait_settled(self) -> None:
        await self._settled.wait()

    async def sign_in(self, email: str, password: str) -> Principal:
        try:
            principal = await self._provider.sign_in(email, password)
        except AuthenticationError as exc:
            logger.error("Error during sign in: %s", exc.detail)
            await self._notifier.error(exc.detail or "Sign in failed")
            raise
        await self._notifier.success("Login successful!")
        self._begin()
        await self._apply(principal)
        return principal

    async def sign_out(self) -> None:
        try:
            await self._provider.sign_out()
        except AuthenticationError as exc:
            logger.error("Error during sign out: %s", exc.detail)
            await self._notifier.error(exc.detail or "Sign out failed")
            raise
        await self._notifier.success("Logged out successfully")
        await self._apply(None)

    def has_permission(self, module: str, action: str) -> bool:
        return self._engine.has_permission(self.role, module, action)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == Role.MANAGER

    @property
    def is_employee(self) -> bool:
        return self.role == Role.EMPLOYEE

    @property
    def is_intern(self) -> bool:
        return self.role == Role.INTERN

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT

    async def _on_change(self, principal: Principal | None) -> None:
        self._begin()
        await self._apply(principal)

    def _begin(self) -> None:
        self.loading = True
        self._settled.clear()

    async def _apply(self, principal: Principal | None) -> None:
        role = await resolve_role(principal, self._open_store) if principal else None
        self.principal = principal
        self.role = role
        self.loading = False
        self._settled.set()
