from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from crm_service.application.dto.principal import Principal

SessionListener = Callable[[Principal | None], Awaitable[None]]


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal: ...


class SessionProvider(Protocol):
    """Source of truth for identity.

    Every method raises ``AuthenticationError`` on failure.
    """

    async def current(self) -> Principal | None: ...

    async def sign_in(self, email: str, password: str) -> Principal: ...

    async def sign_out(self) -> None: ...

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        ...
