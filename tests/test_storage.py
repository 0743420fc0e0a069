"""
Token Store Tests.

Every test runs against both the in-memory and the file-backed store.
"""

import pytest

from oauth_core.core.exceptions import ConfigurationError, StorageError
from oauth_core.storage import (
    FileOAuthStore,
    InMemoryOAuthStore,
    OAuthStore,
    StoredAccessToken,
    StoredAuthCode,
    StoredClient,
    StoredRefreshToken,
    create_store,
)
from tests.helpers import make_settings

NOW = 1_700_000_000.0


@pytest.fixture(params=["memory", "file"])
async def backend(request, tmp_path):
    if request.param == "memory":
        store = InMemoryOAuthStore()
    else:
        store = FileOAuthStore(tmp_path / "oauth")
    await store.initialize()
    yield store
    await store.close()


def _client(client_id="client-1", owner_id="owner-1", created_at=NOW):
    return StoredClient(
        client_id=client_id,
        name=f"Client {client_id}",
        redirect_uris=["https://example.com/cb"],
        allowed_scopes=["read"],
        allowed_grant_types=["authorization_code", "refresh_token"],
        owner_id=owner_id,
        created_at=created_at,
        updated_at=created_at,
    )


def _code(code_hash="code-hash", client_id="client-1", expires_at=NOW + 600):
    return StoredAuthCode(
        code_hash=code_hash,
        client_id=client_id,
        user_id="user-1",
        redirect_uri="https://example.com/cb",
        scope="read",
        expires_at=expires_at,
    )


def _access(token_hash="access-hash", client_id="client-1", user_id="user-1", expires_at=NOW + 3600):
    return StoredAccessToken(
        token_hash=token_hash,
        client_id=client_id,
        user_id=user_id,
        scope="read",
        grant_type="authorization_code",
        expires_at=expires_at,
    )


def _refresh(access, token_hash="refresh-hash", expires_at=NOW + 604800):
    return StoredRefreshToken(
        token_hash=token_hash,
        client_id=access.client_id,
        user_id=access.user_id,
        scope=access.scope,
        access_token_id=access.id,
        expires_at=expires_at,
    )


class TestProtocol:
    def test_backends_satisfy_protocol(self, tmp_path):
        assert isinstance(InMemoryOAuthStore(), OAuthStore)
        assert isinstance(FileOAuthStore(tmp_path), OAuthStore)


class TestClients:
    @pytest.mark.asyncio
    async def test_create_and_get(self, backend):
        await backend.create_client(_client())

        stored = await backend.get_client("client-1")

        assert stored.name == "Client client-1"
        assert await backend.get_client("missing") is None

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, backend):
        await backend.create_client(_client())

        stored = await backend.get_client("client-1")
        stored.name = "mutated"

        assert (await backend.get_client("client-1")).name == "Client client-1"

    @pytest.mark.asyncio
    async def test_list_by_owner_newest_first(self, backend):
        await backend.create_client(_client("a", created_at=NOW))
        await backend.create_client(_client("b", created_at=NOW + 10))
        await backend.create_client(_client("c", owner_id="owner-2"))

        owned = await backend.list_clients_by_owner("owner-1")

        assert [c.client_id for c in owned] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_update(self, backend):
        await backend.create_client(_client())

        updated = await backend.update_client("client-1", {"name": "New", "is_active": False})

        assert updated.name == "New"
        assert updated.is_active is False
        assert updated.updated_at > NOW
        assert await backend.update_client("missing", {"name": "x"}) is None

    @pytest.mark.asyncio
    async def test_delete_cascades(self, backend):
        await backend.create_client(_client())
        access = _access()
        await backend.create_code(_code())
        await backend.create_access_token(access)
        await backend.create_refresh_token(_refresh(access))

        assert await backend.delete_client("client-1") is True

        assert await backend.get_code("code-hash") is None
        assert await backend.get_access_token("access-hash") is None
        assert await backend.get_refresh_token("refresh-hash") is None
        assert await backend.delete_client("client-1") is False


class TestCodes:
    @pytest.mark.asyncio
    async def test_mark_used_is_compare_and_set(self, backend):
        await backend.create_code(_code())

        assert await backend.mark_code_used("code-hash") is True
        assert await backend.mark_code_used("code-hash") is False
        assert await backend.mark_code_used("missing") is False
        assert (await backend.get_code("code-hash")).is_used is True

    @pytest.mark.asyncio
    async def test_flag_replay(self, backend):
        await backend.create_code(_code())

        await backend.flag_code_replay("code-hash")
        await backend.flag_code_replay("missing")

        assert (await backend.get_code("code-hash")).replay_detected is True

    @pytest.mark.asyncio
    async def test_delete_expired(self, backend):
        await backend.create_code(_code("old", expires_at=NOW - 1))
        await backend.create_code(_code("new", expires_at=NOW + 600))

        assert await backend.delete_expired_codes(NOW) == 1
        assert await backend.get_code("old") is None
        assert await backend.get_code("new") is not None


class TestTokens:
    @pytest.mark.asyncio
    async def test_access_token_lookup_by_id(self, backend):
        access = _access()
        await backend.create_access_token(access)

        assert (await backend.get_access_token_by_id(access.id)).token_hash == "access-hash"
        assert await backend.get_access_token_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_revoke(self, backend):
        access = _access()
        await backend.create_access_token(access)
        await backend.create_refresh_token(_refresh(access))

        assert await backend.revoke_access_token("access-hash") is True
        assert await backend.revoke_refresh_token("refresh-hash") is True
        assert await backend.revoke_access_token("missing") is False

        assert (await backend.get_access_token("access-hash")).is_revoked
        assert (await backend.get_refresh_token("refresh-hash")).is_revoked

    @pytest.mark.asyncio
    async def test_revoke_by_id(self, backend):
        access = _access()
        await backend.create_access_token(access)

        assert await backend.revoke_access_token_by_id(access.id) is True
        assert (await backend.get_access_token("access-hash")).is_revoked

    @pytest.mark.asyncio
    async def test_rotation_counter(self, backend):
        access = _access()
        await backend.create_refresh_token(_refresh(access))

        assert await backend.increment_rotation_counter("refresh-hash") == 1
        assert await backend.increment_rotation_counter("refresh-hash") == 2
        assert await backend.increment_rotation_counter("missing") is None

    @pytest.mark.asyncio
    async def test_revoke_for_user_client(self, backend):
        mine = _access("a1")
        other_user = _access("a2", user_id="user-2")
        other_client = _access("a3", client_id="client-2")
        for token in (mine, other_user, other_client):
            await backend.create_access_token(token)
        await backend.create_refresh_token(_refresh(mine, "r1"))

        assert await backend.revoke_tokens_for_user_client("user-1", "client-1") == 2
        assert await backend.revoke_tokens_for_user_client("user-1", "client-1") == 0

        assert not (await backend.get_access_token("a2")).is_revoked
        assert not (await backend.get_access_token("a3")).is_revoked

    @pytest.mark.asyncio
    async def test_delete_expired(self, backend):
        expired = _access("old", expires_at=NOW - 1)
        await backend.create_access_token(expired)
        await backend.create_access_token(_access("new"))
        await backend.create_refresh_token(_refresh(expired, "r-old", expires_at=NOW - 1))

        assert await backend.delete_expired_tokens(NOW) == 2
        assert await backend.get_access_token("new") is not None


class TestFileStore:
    @pytest.mark.asyncio
    async def test_survives_restart(self, tmp_path):
        first = FileOAuthStore(tmp_path)
        await first.initialize()
        await first.create_client(_client())

        second = FileOAuthStore(tmp_path)
        await second.initialize()

        assert (await second.get_client("client-1")).name == "Client client-1"

    @pytest.mark.asyncio
    async def test_keys_are_sanitized(self, tmp_path):
        store = FileOAuthStore(tmp_path / "oauth")
        await store.initialize()

        await store.create_client(_client("../escape"))

        assert not (tmp_path / "escape.json").exists()
        assert (await store.get_client("../escape")).client_id == "../escape"

    @pytest.mark.asyncio
    async def test_unreadable_file_is_skipped(self, tmp_path):
        store = FileOAuthStore(tmp_path)
        await store.initialize()
        await store.create_client(_client())
        (tmp_path / "clients" / "broken.json").write_text("{not json")

        owned = await store.list_clients_by_owner("owner-1")

        assert [c.client_id for c in owned] == ["client-1"]
        assert await store.get_client("broken") is None

    @pytest.mark.asyncio
    async def test_initialize_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(StorageError):
            await FileOAuthStore(blocker / "oauth").initialize()


class TestFactory:
    def test_memory(self):
        assert isinstance(create_store(make_settings()), InMemoryOAuthStore)

    def test_file(self, tmp_path):
        store = create_store(
            make_settings(oauth2_store_backend="file", oauth2_storage_dir=str(tmp_path))
        )
        assert isinstance(store, FileOAuthStore)

    def test_unsupported_backend(self):
        settings = make_settings()
        settings.oauth2_store_backend = "redis"

        with pytest.raises(ConfigurationError, match="Unsupported store backend"):
            create_store(settings)
