"""In-memory OAuth store.

Suitable for tests, development and single-process deployments. Records are
copied on the way in and out so callers never share mutable state with the
store.
"""

import asyncio
import logging
import time
from typing import Any

from .models import StoredAccessToken, StoredAuthCode, StoredClient, StoredRefreshToken

logger = logging.getLogger(__name__)


class InMemoryOAuthStore:
    """OAuthStore backed by dictionaries and guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._clients: dict[str, StoredClient] = {}
        self._codes: dict[str, StoredAuthCode] = {}
        self._access_tokens: dict[str, StoredAccessToken] = {}
        self._refresh_tokens: dict[str, StoredRefreshToken] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        logger.info("Initialized in-memory OAuth store")

    async def close(self) -> None:
        pass

    # ========== Clients ==========

    async def create_client(self, client: StoredClient) -> StoredClient:
        async with self._lock:
            self._clients[client.client_id] = client.model_copy(deep=True)
        return client

    async def get_client(self, client_id: str) -> StoredClient | None:
        stored = self._clients.get(client_id)
        return stored.model_copy(deep=True) if stored else None

    async def list_clients_by_owner(self, owner_id: str) -> list[StoredClient]:
        owned = [c for c in self._clients.values() if c.owner_id == owner_id]
        owned.sort(key=lambda c: c.created_at, reverse=True)
        return [c.model_copy(deep=True) for c in owned]

    async def update_client(self, client_id: str, updates: dict[str, Any]) -> StoredClient | None:
        async with self._lock:
            stored = self._clients.get(client_id)
            if stored is None:
                return None
            updated = stored.model_copy(update={**updates, "updated_at": time.time()}, deep=True)
            self._clients[client_id] = updated
            return updated.model_copy(deep=True)

    async def delete_client(self, client_id: str) -> bool:
        async with self._lock:
            if self._clients.pop(client_id, None) is None:
                return False
            self._codes = {k: v for k, v in self._codes.items() if v.client_id != client_id}
            self._access_tokens = {
                k: v for k, v in self._access_tokens.items() if v.client_id != client_id
            }
            self._refresh_tokens = {
                k: v for k, v in self._refresh_tokens.items() if v.client_id != client_id
            }
            return True

    # ========== Authorization Codes ==========

    async def create_code(self, code: StoredAuthCode) -> StoredAuthCode:
        async with self._lock:
            self._codes[code.code_hash] = code.model_copy(deep=True)
        return code

    async def get_code(self, code_hash: str) -> StoredAuthCode | None:
        stored = self._codes.get(code_hash)
        return stored.model_copy(deep=True) if stored else None

    async def mark_code_used(self, code_hash: str) -> bool:
        async with self._lock:
            stored = self._codes.get(code_hash)
            if stored is None or stored.is_used:
                return False
            stored.is_used = True
            return True

    async def flag_code_replay(self, code_hash: str) -> None:
        async with self._lock:
            stored = self._codes.get(code_hash)
            if stored is not None:
                stored.replay_detected = True

    async def delete_expired_codes(self, now: float) -> int:
        async with self._lock:
            expired = [k for k, v in self._codes.items() if v.expires_at < now]
            for key in expired:
                del self._codes[key]
            return len(expired)

    # ========== Access Tokens ==========

    async def create_access_token(self, token: StoredAccessToken) -> StoredAccessToken:
        async with self._lock:
            self._access_tokens[token.token_hash] = token.model_copy(deep=True)
        return token

    async def get_access_token(self, token_hash: str) -> StoredAccessToken | None:
        stored = self._access_tokens.get(token_hash)
        return stored.model_copy(deep=True) if stored else None

    async def get_access_token_by_id(self, token_id: str) -> StoredAccessToken | None:
        for stored in self._access_tokens.values():
            if stored.id == token_id:
                return stored.model_copy(deep=True)
        return None

    async def revoke_access_token(self, token_hash: str) -> bool:
        async with self._lock:
            stored = self._access_tokens.get(token_hash)
            if stored is None:
                return False
            stored.is_revoked = True
            return True

    async def revoke_access_token_by_id(self, token_id: str) -> bool:
        async with self._lock:
            for stored in self._access_tokens.values():
                if stored.id == token_id:
                    stored.is_revoked = True
                    return True
            return False

    # ========== Refresh Tokens ==========

    async def create_refresh_token(self, token: StoredRefreshToken) -> StoredRefreshToken:
        async with self._lock:
            self._refresh_tokens[token.token_hash] = token.model_copy(deep=True)
        return token

    async def get_refresh_token(self, token_hash: str) -> StoredRefreshToken | None:
        stored = self._refresh_tokens.get(token_hash)
        return stored.model_copy(deep=True) if stored else None

    async def revoke_refresh_token(self, token_hash: str) -> bool:
        async with self._lock:
            stored = self._refresh_tokens.get(token_hash)
            if stored is None:
                return False
            stored.is_revoked = True
            return True

    async def increment_rotation_counter(self, token_hash: str) -> int | None:
        async with self._lock:
            stored = self._refresh_tokens.get(token_hash)
            if stored is None:
                return None
            stored.rotation_counter += 1
            return stored.rotation_counter

    # ========== Bulk Operations ==========

    async def revoke_tokens_for_user_client(self, user_id: str, client_id: str) -> int:
        count = 0
        async with self._lock:
            for collection in (self._access_tokens, self._refresh_tokens):
                for stored in collection.values():
                    if (
                        stored.user_id == user_id
                        and stored.client_id == client_id
                        and not stored.is_revoked
                    ):
                        stored.is_revoked = True
                        count += 1
        return count

    async def delete_expired_tokens(self, now: float) -> int:
        async with self._lock:
            expired_access = [k for k, v in self._access_tokens.items() if v.expires_at < now]
            expired_refresh = [k for k, v in self._refresh_tokens.items() if v.expires_at < now]
            for key in expired_access:
                del self._access_tokens[key]
            for key in expired_refresh:
                del self._refresh_tokens[key]
            return len(expired_access) + len(expired_refresh)
