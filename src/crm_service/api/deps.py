"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator, Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from crm_service.application.dto.principal import Principal
from crm_service.application.exceptions import AuthenticationError
from crm_service.application.policies.permissions import PermissionEngine, build_permission_engine
from crm_service.application.ports.auth import TokenVerifier
from crm_service.application.uow import DataStore, StoreFactory
from crm_service.config import settings
from crm_service.domain.value_objects.enums import GuardState, Role
from crm_service.infrastructure.auth.hs256_verifier import HS256Verifier
from crm_service.infrastructure.auth.jwks_verifier import JWKSVerifier
from crm_service.infrastructure.db.uow import open_store
from crm_service.services.role_resolver import resolve_role
from crm_service.services.route_guard import RequiredPermission, evaluate_access

_bearer_scheme = HTTPBearer(auto_error=False)


def get_store_factory() -> StoreFactory:
    return open_store


StoreFactoryDep = Annotated[StoreFactory, Depends(get_store_factory)]


async def get_store(open_store: StoreFactoryDep) -> AsyncIterator[DataStore]:
    async with open_store() as store:
        yield store


StoreDep = Annotated[DataStore, Depends(get_store)]


def _build_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        if not settings.JWKS_URL:
            raise RuntimeError("JWKS_URL must be set when JWT_VERIFY_MODE=jwks")
        return JWKSVerifier(settings.JWKS_URL, audience=settings.JWT_AUDIENCE)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM, audience=settings.JWT_AUDIENCE)


_verifier: TokenVerifier | None = None
_engine: PermissionEngine | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _build_verifier()
    return _verifier


def get_permission_engine() -> PermissionEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = build_permission_engine(settings.PERMISSION_ENGINE)
    return _engine


EngineDep = Annotated[PermissionEngine, Depends(get_permission_engine)]


async def get_optional_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
) -> Principal | None:
    if credentials is None:
        return None
    try:
        return await verifier.verify(credentials.credentials)
    except AuthenticationError:
        return None


async def get_current_principal(
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
) -> Principal:
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_role(
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
    open_store: StoreFactoryDep,
) -> Role | None:
    return await resolve_role(principal, open_store)


CurrentRole = Annotated[Role | None, Depends(get_current_role)]


def require_permission(module: str, action: str) -> Callable[..., Awaitable[Principal]]:
    """Route guard for HTTP: 401 without a principal, 403 without permission."""
    required = RequiredPermission(module=module, action=action)

    async def _guard(
        principal: Annotated[Principal | None, Depends(get_optional_principal)],
        role: CurrentRole,
        engine: EngineDep,
    ) -> Principal:
        decision = evaluate_access(
            principal,
            role,
            required,
            engine,
            login_path=settings.LOGIN_PATH,
            unauthorized_path=settings.UNAUTHORIZED_PATH,
        )
        if decision.state == GuardState.ALLOWED:
            return principal  # type: ignore[return-value]
        if decision.redirect_to == settings.LOGIN_PATH:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer", "Location": decision.redirect_to},
            )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission {action} on {module}",
            headers={"Location": decision.redirect_to or settings.UNAUTHORIZED_PATH},
        )

    return _guard
