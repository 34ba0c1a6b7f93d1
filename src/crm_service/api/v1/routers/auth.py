from __future__ import annotations

from typing import Annotated, AsyncIterator

import httpx
from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from crm_service.api.deps import EngineDep, StoreFactoryDep, get_verifier
from crm_service.api.v1.schemas.auth import PrincipalResponse, SignInRequest, SignInResponse
from crm_service.application.ports.auth import TokenVerifier
from crm_service.application.ports.notifier import LoggingNotifier
from crm_service.config import settings
from crm_service.infrastructure.auth.gotrue_session import GoTrueSessionProvider
from crm_service.services.auth_session import AuthSession

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        base_url=settings.SUPABASE_URL,
        timeout=settings.AUTH_TIMEOUT_SECONDS,
    ) as client:
        yield client


async def get_session_provider(
    client: Annotated[httpx.AsyncClient, Depends(get_auth_client)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> GoTrueSessionProvider:
    return GoTrueSessionProvider(
        client,
        settings.SUPABASE_ANON_KEY,
        verifier,
        access_token=credentials.credentials if credentials else None,
    )


ProviderDep = Annotated[GoTrueSessionProvider, Depends(get_session_provider)]


@router.post("/sign-in", response_model=SignInResponse)
async def sign_in(
    body: SignInRequest,
    provider: ProviderDep,
    open_store: StoreFactoryDep,
    engine: EngineDep,
) -> SignInResponse:
    session = AuthSession(provider, open_store, LoggingNotifier(), engine)
    principal = await session.sign_in(body.email, body.password)
    return SignInResponse(
        access_token=provider.access_token or "",
        principal=PrincipalResponse.model_validate(principal),
        role=session.role,
    )


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    provider: ProviderDep,
    open_store: StoreFactoryDep,
    engine: EngineDep,
) -> None:
    session = AuthSession(provider, open_store, LoggingNotifier(), engine)
    await session.sign_out()
