from __future__ import annotations

import json

import httpx
import jwt
import pytest

from crm_service.application.exceptions import AuthenticationError
from crm_service.infrastructure.auth.gotrue_session import GoTrueSessionProvider
from crm_service.infrastructure.auth.hs256_verifier import HS256Verifier

SECRET = "gotrue-test-secret-at-least-32-bytes-long"


def _token(sub: str = "alice") -> str:
    return jwt.encode(
        {"sub": sub, "aud": "authenticated", "email": f"{sub}@example.com",
         "user_metadata": {"full_name": "Alice Doe"}},
        SECRET,
        algorithm="HS256",
    )


def _provider(handler, **kwargs) -> GoTrueSessionProvider:
    client = httpx.AsyncClient(
        base_url="https://project.supabase.co",
        transport=httpx.MockTransport(handler),
    )
    verifier = HS256Verifier(SECRET, "HS256", audience="authenticated")
    return GoTrueSessionProvider(client, "anon-key", verifier, **kwargs)


@pytest.mark.asyncio
async def test_sign_in_posts_password_grant_and_emits():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": _token(), "token_type": "bearer"})

    provider = _provider(handler)
    changes = []

    async def listener(principal):
        changes.append(principal)

    provider.subscribe(listener)
    principal = await provider.sign_in("alice@example.com", "secret")

    assert principal.id == "alice"
    assert principal.display_name == "Alice Doe"
    assert changes == [principal]
    assert provider.access_token is not None
    request = seen[0]
    assert request.url.path == "/auth/v1/token"
    assert request.url.params["grant_type"] == "password"
    assert request.headers["apikey"] == "anon-key"
    assert json.loads(request.content) == {"email": "alice@example.com", "password": "secret"}


@pytest.mark.asyncio
async def test_rejected_credentials_raise_with_server_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"},
        )

    provider = _provider(handler)

    with pytest.raises(AuthenticationError) as exc_info:
        await provider.sign_in("alice@example.com", "wrong")
    assert exc_info.value.detail == "Invalid login credentials"
    assert provider.access_token is None


@pytest.mark.asyncio
async def test_unreachable_service_raises_authentication_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AuthenticationError):
        await _provider(handler).sign_in("alice@example.com", "secret")


@pytest.mark.asyncio
async def test_current_verifies_stored_token():
    provider = _provider(lambda request: httpx.Response(500), access_token=_token("bob"))

    principal = await provider.current()

    assert principal is not None
    assert principal.id == "bob"


@pytest.mark.asyncio
async def test_current_without_token_is_none():
    assert await _provider(lambda request: httpx.Response(500)).current() is None


@pytest.mark.asyncio
async def test_sign_out_clears_token_and_emits_none():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/auth/v1/logout"
        assert request.headers["authorization"].startswith("Bearer ")
        return httpx.Response(204)

    provider = _provider(handler, access_token=_token())
    changes = []

    async def listener(principal):
        changes.append(principal)

    unsubscribe = provider.subscribe(listener)
    await provider.sign_out()
    unsubscribe()

    assert provider.access_token is None
    assert changes == [None]


@pytest.mark.asyncio
async def test_sign_out_server_error_raises():
    provider = _provider(lambda request: httpx.Response(500), access_token=_token())

    with pytest.raises(AuthenticationError):
        await provider.sign_out()
    assert provider.access_token is not None
