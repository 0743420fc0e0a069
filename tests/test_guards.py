"""
Authentication Guard Tests.

Tests:
1. Bearer token extraction
2. OAuth access token authentication
3. Session JWT authentication
4. Composite ordering and per-operation scope checks
"""

from unittest.mock import AsyncMock

import pytest
from starlette.requests import Request

from oauth_core.auth.guards import (
    AUTH_TYPE_JWT,
    AUTH_TYPE_OAUTH,
    Authenticator,
    CompositeAuthenticator,
    JwtAuthenticator,
    OAuthTokenAuthenticator,
    Principal,
    extract_bearer_token,
)
from oauth_core.core.exceptions import AuthenticationError, InsufficientScopeError
from tests.helpers import JWT_SECRET, make_session_token


def make_request(authorization: str | None = None) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode("latin-1")))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "query_string": b"",
            "headers": headers,
        }
    )


async def issue_access_token(tokens, scope="read", user_id="user-1"):
    issued = await tokens.generate_access_token(
        client_id="client-1",
        scope=scope,
        grant_type="authorization_code",
        user_id=user_id,
        tenant_id="tenant-1",
    )
    return issued.token


@pytest.fixture
def guard(app_context):
    return app_context.guard


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("Bearer   abc  ", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("Bearer ", None),
            (None, None),
        ],
    )
    def test_extract(self, header, expected):
        assert extract_bearer_token(make_request(header)) == expected


class TestOAuthTokenAuthenticator:
    @pytest.mark.asyncio
    async def test_valid_token(self, tokens):
        token = await issue_access_token(tokens, scope="read admin")
        authenticator = OAuthTokenAuthenticator(tokens)

        principal, error = await authenticator.authenticate(make_request(f"Bearer {token}"))

        assert error is None
        assert principal.auth_type == AUTH_TYPE_OAUTH
        assert principal.user_id == "user-1"
        assert principal.tenant_id == "tenant-1"
        assert principal.client_id == "client-1"
        assert principal.scopes == frozenset({"read", "admin"})

    @pytest.mark.asyncio
    async def test_unknown_token_is_not_an_error(self, tokens):
        authenticator = OAuthTokenAuthenticator(tokens)

        assert await authenticator.authenticate(make_request("Bearer unknown")) == (None, None)

    def test_satisfies_protocol(self, tokens):
        assert isinstance(OAuthTokenAuthenticator(tokens), Authenticator)
        assert isinstance(JwtAuthenticator(JWT_SECRET), Authenticator)


class TestJwtAuthenticator:
    @pytest.mark.asyncio
    async def test_valid_session(self):
        authenticator = JwtAuthenticator(JWT_SECRET)
        token = make_session_token("user-7", tenant_id="tenant-7")

        principal, error = await authenticator.authenticate(make_request(f"Bearer {token}"))

        assert error is None
        assert principal.auth_type == AUTH_TYPE_JWT
        assert principal.user_id == "user-7"
        assert principal.tenant_id == "tenant-7"
        assert principal.scopes == frozenset()

    @pytest.mark.asyncio
    async def test_expired_session(self):
        authenticator = JwtAuthenticator(JWT_SECRET)
        token = make_session_token("user-7", expires_in=-60)

        principal, error = await authenticator.authenticate(make_request(f"Bearer {token}"))

        assert principal is None
        assert error.message == "Session expired"

    @pytest.mark.asyncio
    async def test_wrong_signature(self):
        authenticator = JwtAuthenticator(JWT_SECRET)
        token = make_session_token("user-7", secret="other-secret")

        principal, error = await authenticator.authenticate(make_request(f"Bearer {token}"))

        assert principal is None
        assert error.message == "Invalid authentication"

    @pytest.mark.asyncio
    async def test_issuer_checked_when_configured(self):
        authenticator = JwtAuthenticator(JWT_SECRET, issuer="https://id.example.com")

        good = make_session_token("u", iss="https://id.example.com")
        bad = make_session_token("u", iss="https://evil.example.com")

        assert (await authenticator.authenticate(make_request(f"Bearer {good}")))[0] is not None
        assert (await authenticator.authenticate(make_request(f"Bearer {bad}")))[0] is None

    @pytest.mark.asyncio
    async def test_missing_subject(self):
        from jose import jwt

        authenticator = JwtAuthenticator(JWT_SECRET)
        token = jwt.encode({"tenant_id": "t"}, JWT_SECRET, algorithm="HS256")

        principal, error = await authenticator.authenticate(make_request(f"Bearer {token}"))

        assert principal is None
        assert isinstance(error, AuthenticationError)


class TestCompositeAuthenticator:
    """Composite ordering and operation checks."""

    @pytest.mark.asyncio
    async def test_missing_authorization(self, guard):
        with pytest.raises(AuthenticationError, match="Missing authorization"):
            await guard.authenticate(make_request())

    @pytest.mark.asyncio
    async def test_oauth_token_wins(self, guard, tokens):
        token = await issue_access_token(tokens)

        principal = await guard.authenticate(make_request(f"Bearer {token}"))

        assert principal.auth_type == AUTH_TYPE_OAUTH

    @pytest.mark.asyncio
    async def test_falls_back_to_session_jwt(self, guard):
        principal = await guard.authenticate(
            make_request(f"Bearer {make_session_token('user-2')}")
        )
        assert principal.auth_type == AUTH_TYPE_JWT

    @pytest.mark.asyncio
    async def test_garbage_token(self, guard):
        with pytest.raises(AuthenticationError) as exc_info:
            await guard.authenticate(make_request("Bearer not-a-token"))
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_first_principal_short_circuits(self):
        principal = Principal(auth_type="first", user_id="u1")
        first = AsyncMock()
        first.auth_type = "first"
        first.authenticate.return_value = (principal, None)
        second = AsyncMock()
        second.auth_type = "second"

        guard = CompositeAuthenticator([first, second])

        assert await guard.authenticate(make_request("Bearer x")) is principal
        second.authenticate.assert_not_called()

    @pytest.mark.asyncio
    async def test_session_operations_reject_oauth_tokens(self, guard, tokens):
        token = await issue_access_token(tokens, scope="read write admin")

        with pytest.raises(AuthenticationError) as exc_info:
            await guard.authorize(make_request(f"Bearer {token}"), "authorize.approve")

        assert not isinstance(exc_info.value, InsufficientScopeError)

    @pytest.mark.asyncio
    async def test_session_operations_accept_session_jwt(self, guard):
        principal = await guard.authorize(
            make_request(f"Bearer {make_session_token('user-3')}"), "authorize"
        )
        assert principal.user_id == "user-3"

    @pytest.mark.asyncio
    async def test_management_requires_admin_scope(self, guard, tokens):
        token = await issue_access_token(tokens, scope="read write")

        with pytest.raises(InsufficientScopeError) as exc_info:
            await guard.authorize(make_request(f"Bearer {token}"), "clients.create")

        assert exc_info.value.status_code == 403
        assert exc_info.value.required == frozenset({"admin"})

    @pytest.mark.asyncio
    async def test_management_with_admin_scope(self, guard, tokens):
        token = await issue_access_token(tokens, scope="admin")

        principal = await guard.authorize(make_request(f"Bearer {token}"), "clients.list")

        assert principal.client_id == "client-1"

    @pytest.mark.asyncio
    async def test_session_jwt_skips_scope_table(self, guard):
        principal = await guard.authorize(
            make_request(f"Bearer {make_session_token('owner-1')}"), "clients.delete"
        )
        assert principal.user_id == "owner-1"

    def test_principal_to_context(self):
        ctx = Principal(auth_type=AUTH_TYPE_JWT, user_id="u", tenant_id="t").to_context()
        assert (ctx.user_id, ctx.tenant_id) == ("u", "t")
