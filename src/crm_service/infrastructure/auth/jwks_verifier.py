from __future__ import annotations

import asyncio
import logging

import jwt
from jwt import PyJWKClient

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AuthenticationError
from crm_service.infrastructure.auth.claims import principal_from_claims

logger = logging.getLogger(__name__)


class JWKSVerifier:
    """Verify JWTs using a remote JWKS endpoint."""

    def __init__(self, jwks_url: str, audience: str | None = None) -> None:
        self._jwks_url = jwks_url
        self._audience = audience
        self._jwk_client = PyJWKClient(jwks_url)

    async def verify(self, token: str) -> Principal:
        try:
            # PyJWKClient fetches keys with blocking I/O
            signing_key = await asyncio.to_thread(self._jwk_client.get_signing_key_from_jwt, token)
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.PyJWTError as exc:
            logger.debug("JWKS verification failed for %s", self._jwks_url, exc_info=True)
            raise AuthenticationError(str(exc)) from exc
        return principal_from_claims(payload)
