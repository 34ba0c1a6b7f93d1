from __future__ import annotations

import jwt

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AuthenticationError
from crm_service.infrastructure.auth.claims import principal_from_claims


class HS256Verifier:
    """Verify JWTs signed with the project's shared secret."""

    def __init__(self, secret: str, algorithm: str = "HS256", audience: str | None = None) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    async def verify(self, token: str) -> Principal:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                options={"verify_aud": self._audience is not None},
            )
        except jwt.PyJWTError as exc:
            raise AuthenticationError(str(exc)) from exc
        if "sub" not in payload:
            raise AuthenticationError("Token has no subject")
        return principal_from_claims(payload)
