"""
ClientRegistry Tests.

Tests:
1. Registration (secrets, redirect URI policy, scopes, grant types)
2. Credential validation
3. Redirect URI / scope / grant type checks
4. Lifecycle (update, secret regeneration, deletion cascade)
"""

import pytest

from oauth_core.auth.clients import to_client_info
from oauth_core.core.exceptions import OAuthError

from tests.helpers import REDIRECT_URI, make_settings


class TestCreateClient:
    """Client registration."""

    @pytest.mark.asyncio
    async def test_confidential_client_gets_secret_once(self, clients, store):
        client, secret = await clients.create_client(
            name="App",
            redirect_uris=[REDIRECT_URI],
            allowed_scopes=["read"],
        )

        assert secret, "Confidential clients must receive a secret"
        assert client.is_confidential is True
        stored = await store.get_client(client.client_id)
        assert stored.client_secret_hash
        assert secret not in stored.client_secret_hash
        assert stored.client_secret_hash.startswith("$argon2")

    @pytest.mark.asyncio
    async def test_public_client_has_no_secret(self, clients):
        client, secret = await clients.create_client(
            name="SPA",
            redirect_uris=[REDIRECT_URI],
            allowed_scopes=["read"],
            is_confidential=False,
        )

        assert secret is None
        assert client.client_secret_hash is None

    @pytest.mark.asyncio
    async def test_defaults(self, clients):
        client, _ = await clients.create_client(
            name="App", redirect_uris=[REDIRECT_URI], allowed_scopes=["read"]
        )

        assert client.allowed_grant_types == ["authorization_code", "refresh_token"]
        assert client.is_active is True
        assert len(client.client_id) == 36

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "uri",
        [
            "https://example.com/callback",
            "http://localhost:3000/callback",
            "http://127.0.0.1/cb",
            "http://[::1]:8080/cb",
        ],
    )
    async def test_accepts_https_and_loopback_http(self, clients, uri):
        client, _ = await clients.create_client(
            name="App", redirect_uris=[uri], allowed_scopes=["read"]
        )
        assert client.redirect_uris == [uri]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "uri",
        [
            "https://example.com/callback#fragment",
            "http://example.com/callback",
            "https://*.example.com/callback",
            "myapp://callback",
            "javascript:alert(1)",
            "not a uri",
            "",
        ],
    )
    async def test_rejects_invalid_redirect_uris(self, clients, uri):
        with pytest.raises(OAuthError) as exc_info:
            await clients.create_client(name="App", redirect_uris=[uri], allowed_scopes=["read"])

        assert exc_info.value.code == "invalid_request"

    @pytest.mark.asyncio
    async def test_custom_scheme_allowed_when_enabled(self, store):
        from oauth_core.core.context import build_app_context

        context = build_app_context(
            make_settings(oauth2_allow_custom_scheme_redirects=True), store=store
        )
        client, _ = await context.clients.create_client(
            name="Native", redirect_uris=["myapp://callback"], allowed_scopes=["read"]
        )
        assert client.redirect_uris == ["myapp://callback"]

    @pytest.mark.asyncio
    async def test_rejects_unknown_scope(self, clients):
        with pytest.raises(OAuthError) as exc_info:
            await clients.create_client(
                name="App", redirect_uris=[REDIRECT_URI], allowed_scopes=["read", "superuser"]
            )

        assert exc_info.value.code == "invalid_scope"
        assert "superuser" in exc_info.value.description

    @pytest.mark.asyncio
    async def test_public_client_cannot_use_client_credentials(self, clients):
        with pytest.raises(OAuthError) as exc_info:
            await clients.create_client(
                name="SPA",
                redirect_uris=[REDIRECT_URI],
                allowed_scopes=["read"],
                allowed_grant_types=["client_credentials"],
                is_confidential=False,
            )

        assert exc_info.value.code == "invalid_request"
        assert exc_info.value.description == "Public clients cannot use client_credentials grant"

    @pytest.mark.asyncio
    async def test_rejects_unsupported_grant_type(self, clients):
        with pytest.raises(OAuthError) as exc_info:
            await clients.create_client(
                name="App",
                redirect_uris=[REDIRECT_URI],
                allowed_scopes=["read"],
                allowed_grant_types=["implicit"],
            )

        assert exc_info.value.code == "invalid_request"


class TestValidateClient:
    """Credential validation."""

    @pytest.mark.asyncio
    async def test_valid_secret(self, clients, confidential_client):
        client, secret = confidential_client
        validated = await clients.validate_client(client.client_id, secret)
        assert validated is not None
        assert validated.client_id == client.client_id

    @pytest.mark.asyncio
    async def test_wrong_secret(self, clients, confidential_client):
        client, _ = confidential_client
        assert await clients.validate_client(client.client_id, "wrong") is None

    @pytest.mark.asyncio
    async def test_missing_secret_for_confidential_client(self, clients, confidential_client):
        client, _ = confidential_client
        assert await clients.validate_client(client.client_id) is None

    @pytest.mark.asyncio
    async def test_unknown_client(self, clients):
        assert await clients.validate_client("does-not-exist", "secret") is None
        assert await clients.validate_client(None) is None

    @pytest.mark.asyncio
    async def test_inactive_client(self, clients, confidential_client):
        client, secret = confidential_client
        await clients.update_client(client.client_id, is_active=False)
        assert await clients.validate_client(client.client_id, secret) is None

    @pytest.mark.asyncio
    async def test_public_client_needs_no_secret(self, clients, public_client):
        assert await clients.validate_client(public_client.client_id) is not None


class TestValidationHelpers:
    """Redirect URI, scope and grant type checks."""

    @pytest.mark.asyncio
    async def test_redirect_uri_exact_match_only(self, clients, confidential_client):
        client, _ = confidential_client

        assert clients.validate_redirect_uri(client, REDIRECT_URI)
        assert not clients.validate_redirect_uri(client, REDIRECT_URI + "/")
        assert not clients.validate_redirect_uri(client, REDIRECT_URI + "?x=1")
        assert not clients.validate_redirect_uri(client, "https://example.com/callbac")
        assert not clients.validate_redirect_uri(client, "HTTPS://example.com/callback")
        assert not clients.validate_redirect_uri(client, None)

    @pytest.mark.asyncio
    async def test_scopes(self, clients, confidential_client):
        client, _ = confidential_client

        assert clients.validate_scopes(client, [])
        assert clients.validate_scopes(client, ["read"])
        assert clients.validate_scopes(client, ["read", "write"])
        assert not clients.validate_scopes(client, ["read", "admin"])

    @pytest.mark.asyncio
    async def test_grant_types(self, clients, confidential_client):
        client, _ = confidential_client

        assert clients.validate_grant_type(client, "authorization_code")
        assert clients.validate_grant_type(client, "refresh_token")
        assert not clients.validate_grant_type(client, "client_credentials")


class TestLifecycle:
    """Update, secret regeneration and deletion."""

    @pytest.mark.asyncio
    async def test_update_fields(self, clients, confidential_client):
        client, _ = confidential_client

        updated = await clients.update_client(
            client.client_id,
            name="Renamed",
            redirect_uris=["https://example.org/cb"],
            allowed_scopes=["read"],
        )

        assert updated.name == "Renamed"
        assert updated.redirect_uris == ["https://example.org/cb"]
        assert updated.allowed_scopes == ["read"]
        assert updated.client_secret_hash == client.client_secret_hash

    @pytest.mark.asyncio
    async def test_update_revalidates_uris(self, clients, confidential_client):
        client, _ = confidential_client
        with pytest.raises(OAuthError) as exc_info:
            await clients.update_client(client.client_id, redirect_uris=["http://evil.com/cb"])
        assert exc_info.value.code == "invalid_request"

    @pytest.mark.asyncio
    async def test_update_unknown_client(self, clients):
        with pytest.raises(OAuthError) as exc_info:
            await clients.update_client("missing", name="x")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_regenerate_secret_invalidates_old_one(self, clients, confidential_client):
        client, old_secret = confidential_client

        new_secret = await clients.regenerate_secret(client.client_id)

        assert new_secret != old_secret
        assert await clients.validate_client(client.client_id, old_secret) is None
        assert await clients.validate_client(client.client_id, new_secret) is not None

    @pytest.mark.asyncio
    async def test_regenerate_secret_public_client(self, clients, public_client):
        with pytest.raises(OAuthError) as exc_info:
            await clients.regenerate_secret(public_client.client_id)
        assert exc_info.value.code == "invalid_request"

    @pytest.mark.asyncio
    async def test_regenerate_secret_unknown_client(self, clients):
        with pytest.raises(OAuthError) as exc_info:
            await clients.regenerate_secret("missing")
        assert exc_info.value.code == "invalid_client"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_cascades_to_tokens(self, clients, tokens, confidential_client):
        client, _ = confidential_client
        access = await tokens.generate_access_token(
            client_id=client.client_id, scope="read", grant_type="authorization_code", user_id="u1"
        )

        await clients.delete_client(client.client_id)

        assert await clients.get_client(client.client_id) is None
        assert await tokens.validate_access_token(access.token) is None

    @pytest.mark.asyncio
    async def test_delete_unknown_client(self, clients):
        with pytest.raises(OAuthError) as exc_info:
            await clients.delete_client("missing")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_list_clients_by_owner(self, clients, confidential_client, public_client):
        await clients.create_client(
            name="Other", redirect_uris=[REDIRECT_URI], allowed_scopes=["read"], owner_id="owner-2"
        )

        owned = await clients.list_clients("owner-1")

        assert {c.name for c in owned} == {"Test Confidential App", "Test Public App"}

    @pytest.mark.asyncio
    async def test_client_info_hides_secret_hash(self, confidential_client):
        client, _ = confidential_client
        info = to_client_info(client).model_dump()
        assert "client_secret_hash" not in info
        assert info["client_id"] == client.client_id
