"""Session provider backed by the Supabase GoTrue REST API."""
from __future__ import annotations

import logging
from typing import Callable

import httpx

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AuthenticationError
from crm_service.application.ports.auth import SessionListener, TokenVerifier

logger = logging.getLogger(__name__)


class GoTrueSessionProvider:
    """One signed-in session: holds the access token of a single client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        anon_key: str,
        verifier: TokenVerifier,
        *,
        access_token: str | None = None,
    ) -> None:
        self._client = client
        self._anon_key = anon_key
        self._verifier = verifier
        self._access_token = access_token
        self._listeners: list[SessionListener] = []

    @property
    def access_token(self) -> str | None:
        return self._access_token

    async def current(self) -> Principal | None:
        if not self._access_token:
            return None
        return await self._verifier.verify(self._access_token)

    async def sign_in(self, email: str, password: str) -> Principal:
        try:
            resp = await self._client.post(
                "/auth/v1/token",
                params={"grant_type": "password"},
                headers={"apikey": self._anon_key},
                json={"email": email, "password": password},
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Auth service unavailable: {exc}") from exc

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}
        if resp.status_code != 200:
            detail = body.get("error_description") or body.get("msg") or "Invalid login credentials"
            raise AuthenticationError(detail)

        token = body.get("access_token")
        if not token:
            raise AuthenticationError("Auth service returned no access token")
        principal = await self._verifier.verify(token)
        self._access_token = token
        logger.info("Signed in %s", principal.id)
        await self._emit(principal)
        return principal

    async def sign_out(self) -> None:
        if not self._access_token:
            return
        try:
            resp = await self._client.post(
                "/auth/v1/logout",
                headers={
                    "apikey": self._anon_key,
                    "Authorization": f"Bearer {self._access_token}",
                },
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Auth service unavailable: {exc}") from exc
        # an already expired session is signed out anyway
        if resp.status_code not in (200, 204, 401):
            raise AuthenticationError(f"Sign out failed ({resp.status_code})")
        self._access_token = None
        await self._emit(None)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def _emit(self, principal: Principal | None) -> None:
        for listener in list(self._listeners):
            await listener(principal)
