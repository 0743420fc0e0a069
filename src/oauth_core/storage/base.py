"""
Base protocol/interface for OAuth token store implementations.
All store backends must implement this protocol.
"""

from typing import Any, Protocol, runtime_checkable

from .models import StoredAccessToken, StoredAuthCode, StoredClient, StoredRefreshToken


@runtime_checkable
class OAuthStore(Protocol):
    """
    Protocol defining the persistence operations of the authorization server.
    Both the in-memory and the file-backed store implement this interface.

    Every conditional update (``mark_code_used``) must be atomic with respect
    to concurrent callers of the same store.
    """

    async def initialize(self) -> None:
        """
        Prepare the backing storage (directories, connections).
        This should be called once when the application starts.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""
        ...

    # ========== Clients ==========

    async def create_client(self, client: StoredClient) -> StoredClient:
        """Persist a new client registration."""
        ...

    async def get_client(self, client_id: str) -> StoredClient | None:
        """Find a client by its public client_id."""
        ...

    async def list_clients_by_owner(self, owner_id: str) -> list[StoredClient]:
        """List the clients owned by a user, newest first."""
        ...

    async def update_client(self, client_id: str, updates: dict[str, Any]) -> StoredClient | None:
        """
        Apply field updates to a client.

        Returns:
            The updated client, or None if it does not exist
        """
        ...

    async def delete_client(self, client_id: str) -> bool:
        """
        Delete a client together with every code and token issued to it.

        Returns:
            True if the client existed
        """
        ...

    # ========== Authorization Codes ==========

    async def create_code(self, code: StoredAuthCode) -> StoredAuthCode:
        """Persist a new authorization code."""
        ...

    async def get_code(self, code_hash: str) -> StoredAuthCode | None:
        """Find an authorization code by hash."""
        ...

    async def mark_code_used(self, code_hash: str) -> bool:
        """
        Atomically set ``is_used`` if, and only if, it is currently unset.

        Returns:
            True for the single caller that flipped the flag
        """
        ...

    async def flag_code_replay(self, code_hash: str) -> None:
        """Record that a used code was presented again."""
        ...

    async def delete_expired_codes(self, now: float) -> int:
        """Delete codes that expired before ``now``; returns the count."""
        ...

    # ========== Access Tokens ==========

    async def create_access_token(self, token: StoredAccessToken) -> StoredAccessToken:
        """Persist a new access token."""
        ...

    async def get_access_token(self, token_hash: str) -> StoredAccessToken | None:
        """Find an access token by hash (revoked tokens included)."""
        ...

    async def get_access_token_by_id(self, token_id: str) -> StoredAccessToken | None:
        """Find an access token by record id."""
        ...

    async def revoke_access_token(self, token_hash: str) -> bool:
        """Mark an access token revoked; returns True if it existed."""
        ...

    async def revoke_access_token_by_id(self, token_id: str) -> bool:
        """Mark an access token revoked by record id; returns True if it existed."""
        ...

    # ========== Refresh Tokens ==========

    async def create_refresh_token(self, token: StoredRefreshToken) -> StoredRefreshToken:
        """Persist a new refresh token."""
        ...

    async def get_refresh_token(self, token_hash: str) -> StoredRefreshToken | None:
        """Find a refresh token by hash (revoked tokens included)."""
        ...

    async def revoke_refresh_token(self, token_hash: str) -> bool:
        """Mark a refresh token revoked; returns True if it existed."""
        ...

    async def increment_rotation_counter(self, token_hash: str) -> int | None:
        """Increment and return the rotation counter, or None if not found."""
        ...

    # ========== Bulk Operations ==========

    async def revoke_tokens_for_user_client(self, user_id: str, client_id: str) -> int:
        """Revoke every access and refresh token of a user/client pair."""
        ...

    async def delete_expired_tokens(self, now: float) -> int:
        """Delete access and refresh tokens that expired before ``now``."""
        ...
