"""File-based OAuth store.

Stores OAuth entities (clients, authorization codes, access tokens, refresh
tokens) as JSON files on disk, providing persistence across server restarts.
One file per entity, one subdirectory per entity type.

For production with multiple servers, use a shared database instead: the lock
below only serializes writers inside a single process.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from oauth_core.core.exceptions import StorageError

from .models import StoredAccessToken, StoredAuthCode, StoredClient, StoredRefreshToken

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)


class FileOAuthStore:
    """OAuthStore persisting each entity to its own JSON file."""

    def __init__(self, storage_dir: str | Path = ".oauth_storage") -> None:
        """Initialize the file store.

        Args:
            storage_dir: Directory for storing OAuth data
        """
        self._storage_dir = Path(storage_dir)
        self._clients_dir = self._storage_dir / "clients"
        self._codes_dir = self._storage_dir / "auth_codes"
        self._access_tokens_dir = self._storage_dir / "access_tokens"
        self._refresh_tokens_dir = self._storage_dir / "refresh_tokens"
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        try:
            self._storage_dir.mkdir(parents=True, exist_ok=True)
            for dir_path in [
                self._clients_dir,
                self._codes_dir,
                self._access_tokens_dir,
                self._refresh_tokens_dir,
            ]:
                dir_path.mkdir(exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self._storage_dir}: {e}") from e

        logger.info("Initialized FileOAuthStore with storage at %s", self._storage_dir)

    async def close(self) -> None:
        pass

    # ========== File helpers ==========

    def _get_file_path(self, directory: Path, key: str) -> Path:
        """Get file path for a storage key (sanitized)."""
        safe_key = key.replace("/", "_").replace("\\", "_").replace("..", "_")
        return directory / f"{safe_key}.json"

    def _read_entity(self, directory: Path, key: str, model: type[EntityT]) -> EntityT | None:
        file_path = self._get_file_path(directory, key)
        if not file_path.exists():
            return None
        try:
            return model.model_validate_json(file_path.read_text())
        except Exception as e:
            logger.warning("Failed to read entity %s: %s", key, e)
            return None

    def _write_entity(self, directory: Path, key: str, entity: BaseModel) -> None:
        file_path = self._get_file_path(directory, key)
        try:
            file_path.write_text(entity.model_dump_json(indent=2))
        except OSError as e:
            raise StorageError(f"Failed to write entity {file_path.name}: {e}") from e

    def _delete_entity(self, directory: Path, key: str) -> bool:
        file_path = self._get_file_path(directory, key)
        if not file_path.exists():
            return False
        file_path.unlink()
        return True

    def _iter_entities(self, directory: Path, model: type[EntityT]) -> list[EntityT]:
        """Load every readable entity of a directory."""
        entities = []
        for file_path in directory.glob("*.json"):
            try:
                entities.append(model.model_validate_json(file_path.read_text()))
            except Exception as e:
                logger.warning("Skipping unreadable entity %s: %s", file_path.name, e)
        return entities

    # ========== Clients ==========

    async def create_client(self, client: StoredClient) -> StoredClient:
        async with self._lock:
            self._write_entity(self._clients_dir, client.client_id, client)
        return client

    async def get_client(self, client_id: str) -> StoredClient | None:
        return self._read_entity(self._clients_dir, client_id, StoredClient)

    async def list_clients_by_owner(self, owner_id: str) -> list[StoredClient]:
        owned = [
            c for c in self._iter_entities(self._clients_dir, StoredClient) if c.owner_id == owner_id
        ]
        owned.sort(key=lambda c: c.created_at, reverse=True)
        return owned

    async def update_client(self, client_id: str, updates: dict[str, Any]) -> StoredClient | None:
        async with self._lock:
            stored = self._read_entity(self._clients_dir, client_id, StoredClient)
            if stored is None:
                return None
            updated = stored.model_copy(update={**updates, "updated_at": time.time()})
            self._write_entity(self._clients_dir, client_id, updated)
            return updated

    async def delete_client(self, client_id: str) -> bool:
        async with self._lock:
            if not self._delete_entity(self._clients_dir, client_id):
                return False
            for code in self._iter_entities(self._codes_dir, StoredAuthCode):
                if code.client_id == client_id:
                    self._delete_entity(self._codes_dir, code.code_hash)
            for access in self._iter_entities(self._access_tokens_dir, StoredAccessToken):
                if access.client_id == client_id:
                    self._delete_entity(self._access_tokens_dir, access.token_hash)
            for refresh in self._iter_entities(self._refresh_tokens_dir, StoredRefreshToken):
                if refresh.client_id == client_id:
                    self._delete_entity(self._refresh_tokens_dir, refresh.token_hash)
            return True

    # ========== Authorization Codes ==========

    async def create_code(self, code: StoredAuthCode) -> StoredAuthCode:
        async with self._lock:
            self._write_entity(self._codes_dir, code.code_hash, code)
        return code

    async def get_code(self, code_hash: str) -> StoredAuthCode | None:
        return self._read_entity(self._codes_dir, code_hash, StoredAuthCode)

    async def mark_code_used(self, code_hash: str) -> bool:
        async with self._lock:
            stored = self._read_entity(self._codes_dir, code_hash, StoredAuthCode)
            if stored is None or stored.is_used:
                return False
            stored.is_used = True
            self._write_entity(self._codes_dir, code_hash, stored)
            return True

    async def flag_code_replay(self, code_hash: str) -> None:
        async with self._lock:
            stored = self._read_entity(self._codes_dir, code_hash, StoredAuthCode)
            if stored is not None:
                stored.replay_detected = True
                self._write_entity(self._codes_dir, code_hash, stored)

    async def delete_expired_codes(self, now: float) -> int:
        count = 0
        async with self._lock:
            for code in self._iter_entities(self._codes_dir, StoredAuthCode):
                if code.expires_at < now and self._delete_entity(self._codes_dir, code.code_hash):
                    count += 1
        return count

    # ========== Access Tokens ==========

    async def create_access_token(self, token: StoredAccessToken) -> StoredAccessToken:
        async with self._lock:
            self._write_entity(self._access_tokens_dir, token.token_hash, token)
        return token

    async def get_access_token(self, token_hash: str) -> StoredAccessToken | None:
        return self._read_entity(self._access_tokens_dir, token_hash, StoredAccessToken)

    async def get_access_token_by_id(self, token_id: str) -> StoredAccessToken | None:
        for token in self._iter_entities(self._access_tokens_dir, StoredAccessToken):
            if token.id == token_id:
                return token
        return None

    async def revoke_access_token(self, token_hash: str) -> bool:
        async with self._lock:
            stored = self._read_entity(self._access_tokens_dir, token_hash, StoredAccessToken)
            if stored is None:
                return False
            stored.is_revoked = True
            self._write_entity(self._access_tokens_dir, token_hash, stored)
            return True

    async def revoke_access_token_by_id(self, token_id: str) -> bool:
        token = await self.get_access_token_by_id(token_id)
        if token is None:
            return False
        return await self.revoke_access_token(token.token_hash)

    # ========== Refresh Tokens ==========

    async def create_refresh_token(self, token: StoredRefreshToken) -> StoredRefreshToken:
        async with self._lock:
            self._write_entity(self._refresh_tokens_dir, token.token_hash, token)
        return token

    async def get_refresh_token(self, token_hash: str) -> StoredRefreshToken | None:
        return self._read_entity(self._refresh_tokens_dir, token_hash, StoredRefreshToken)

    async def revoke_refresh_token(self, token_hash: str) -> bool:
        async with self._lock:
            stored = self._read_entity(self._refresh_tokens_dir, token_hash, StoredRefreshToken)
            if stored is None:
                return False
            stored.is_revoked = True
            self._write_entity(self._refresh_tokens_dir, token_hash, stored)
            return True

    async def increment_rotation_counter(self, token_hash: str) -> int | None:
        async with self._lock:
            stored = self._read_entity(self._refresh_tokens_dir, token_hash, StoredRefreshToken)
            if stored is None:
                return None
            stored.rotation_counter += 1
            self._write_entity(self._refresh_tokens_dir, token_hash, stored)
            return stored.rotation_counter

    # ========== Bulk Operations ==========

    async def revoke_tokens_for_user_client(self, user_id: str, client_id: str) -> int:
        count = 0
        async with self._lock:
            for directory, model in (
                (self._access_tokens_dir, StoredAccessToken),
                (self._refresh_tokens_dir, StoredRefreshToken),
            ):
                for token in self._iter_entities(directory, model):
                    if (
                        token.user_id == user_id
                        and token.client_id == client_id
                        and not token.is_revoked
                    ):
                        token.is_revoked = True
                        self._write_entity(directory, token.token_hash, token)
                        count += 1
        return count

    async def delete_expired_tokens(self, now: float) -> int:
        count = 0
        async with self._lock:
            for directory, model in (
                (self._access_tokens_dir, StoredAccessToken),
                (self._refresh_tokens_dir, StoredRefreshToken),
            ):
                for token in self._iter_entities(directory, model):
                    if token.expires_at < now and self._delete_entity(directory, token.token_hash):
                        count += 1
        return count
