"""
OAuth client registry.

Manages client registration, credential validation and lifecycle. Confidential
clients get a random secret which is hashed with a memory-hard function before
storage and shown to the caller exactly once.
"""

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any
from urllib.parse import urlsplit

from oauth_core.config import Settings
from oauth_core.core.constants import (
    CLIENT_SECRET_BYTES,
    DEFAULT_GRANT_TYPES,
    GRANT_CLIENT_CREDENTIALS,
    INVALID_CLIENT,
    INVALID_REQUEST,
    INVALID_SCOPE,
    LOOPBACK_HOSTS,
    SUPPORTED_GRANT_TYPES,
)
from oauth_core.core.exceptions import oauth_error
from oauth_core.storage.base import OAuthStore
from oauth_core.storage.models import StoredClient

from .hashing import SecretHasher, generate_opaque_token
from .models import ClientInfo

logger = logging.getLogger(__name__)


class ClientRegistry:
    """Client lifecycle and credential/redirect/scope/grant-type validation."""

    def __init__(
        self,
        store: OAuthStore,
        hasher: SecretHasher,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._hasher = hasher
        self._settings = settings
        self._clock = clock

    @property
    def valid_scopes(self) -> list[str]:
        return self._settings.get_oauth2_scopes_list()

    # ========== Registration ==========

    async def create_client(
        self,
        name: str,
        redirect_uris: list[str],
        allowed_scopes: list[str],
        allowed_grant_types: list[str] | None = None,
        is_confidential: bool = True,
        description: str | None = None,
        access_token_lifetime: int | None = None,
        refresh_token_lifetime: int | None = None,
        owner_id: str | None = None,
        tenant_id: str | None = None,
    ) -> tuple[StoredClient, str | None]:
        """
        Register a new client.

        Args:
            name: Display name
            redirect_uris: Redirect URIs, matched exactly at authorization time
            allowed_scopes: Scopes the client may request
            allowed_grant_types: Grant types (defaults to authorization_code + refresh_token)
            is_confidential: Whether the client can keep a secret
            description: Optional description for consent screens
            access_token_lifetime: Per-client access token lifetime override
            refresh_token_lifetime: Per-client refresh token lifetime override
            owner_id: User who owns the registration
            tenant_id: Tenant of the owner

        Returns:
            Tuple of (stored client, plaintext secret or None for public clients)

        Raises:
            OAuthError: If a redirect URI, scope or grant type is not acceptable
        """
        self._check_redirect_uris(redirect_uris)
        self._check_scopes(allowed_scopes)

        grant_types = list(allowed_grant_types or DEFAULT_GRANT_TYPES)
        for grant_type in grant_types:
            if grant_type not in SUPPORTED_GRANT_TYPES:
                raise oauth_error(INVALID_REQUEST, f"Unsupported grant type: {grant_type}")

        if not is_confidential and GRANT_CLIENT_CREDENTIALS in grant_types:
            raise oauth_error(INVALID_REQUEST, "Public clients cannot use client_credentials grant")

        client_secret = None
        client_secret_hash = None
        if is_confidential:
            client_secret = generate_opaque_token(CLIENT_SECRET_BYTES)
            client_secret_hash = await self._hasher.hash(client_secret)

        now = self._clock()
        client = StoredClient(
            client_id=str(uuid.uuid4()),
            client_secret_hash=client_secret_hash,
            name=name,
            description=description,
            redirect_uris=list(redirect_uris),
            allowed_scopes=list(allowed_scopes),
            allowed_grant_types=grant_types,
            is_confidential=is_confidential,
            access_token_lifetime=access_token_lifetime,
            refresh_token_lifetime=refresh_token_lifetime,
            owner_id=owner_id,
            tenant_id=tenant_id,
            created_at=now,
            updated_at=now,
        )
        await self._store.create_client(client)

        logger.info(
            "✓ Registered %s client %s (%s)",
            "confidential" if is_confidential else "public",
            client.client_id,
            name,
        )
        return client, client_secret

    # ========== Lookup and Validation ==========

    async def get_client(self, client_id: str | None) -> StoredClient | None:
        if not client_id:
            return None
        return await self._store.get_client(client_id)

    async def list_clients(self, owner_id: str) -> list[StoredClient]:
        return await self._store.list_clients_by_owner(owner_id)

    async def validate_client(
        self,
        client_id: str | None,
        client_secret: str | None = None,
    ) -> StoredClient | None:
        """
        Validate client credentials.

        Unknown and inactive clients are rejected. Confidential clients must
        present a secret matching the stored hash; public clients are accepted
        on their client_id alone.

        Returns:
            The client, or None if the credentials are not valid
        """
        client = await self.get_client(client_id)
        if client is None or not client.is_active:
            return None

        if client.is_confidential:
            if not client_secret or not client.client_secret_hash:
                return None
            if not await self._hasher.verify(client_secret, client.client_secret_hash):
                logger.info("Client secret mismatch for %s", client.client_id)
                return None

        return client

    def validate_redirect_uri(self, client: StoredClient, redirect_uri: str | None) -> bool:
        # Exact match only (RFC 6749 Section 3.1.2.3)
        return redirect_uri is not None and redirect_uri in client.redirect_uris

    def validate_scopes(self, client: StoredClient, requested: list[str]) -> bool:
        if not requested:
            return True
        return all(scope in client.allowed_scopes for scope in requested)

    def validate_grant_type(self, client: StoredClient, grant_type: str) -> bool:
        return grant_type in client.allowed_grant_types

    # ========== Lifecycle ==========

    async def update_client(
        self,
        client_id: str,
        name: str | None = None,
        description: str | None = None,
        redirect_uris: list[str] | None = None,
        allowed_scopes: list[str] | None = None,
        is_active: bool | None = None,
    ) -> StoredClient:
        """Update mutable client fields. client_id and secret cannot be changed here."""
        if redirect_uris is not None:
            self._check_redirect_uris(redirect_uris)
        if allowed_scopes is not None:
            self._check_scopes(allowed_scopes)

        updates: dict[str, Any] = {
            key: value
            for key, value in {
                "name": name,
                "description": description,
                "redirect_uris": redirect_uris,
                "allowed_scopes": allowed_scopes,
                "is_active": is_active,
            }.items()
            if value is not None
        }

        client = await self._store.update_client(client_id, updates)
        if client is None:
            raise oauth_error(INVALID_CLIENT, "Client not found", status_code=404)

        logger.info("Updated client %s (%s)", client_id, ", ".join(sorted(updates)) or "no changes")
        return client

    async def regenerate_secret(self, client_id: str) -> str:
        """
        Replace the secret of a confidential client.

        The previous secret stops working immediately.

        Returns:
            The new plaintext secret
        """
        client = await self._store.get_client(client_id)
        if client is None:
            raise oauth_error(INVALID_CLIENT, "Client not found", status_code=404)
        if not client.is_confidential:
            raise oauth_error(INVALID_REQUEST, "Public clients do not have secrets")

        client_secret = generate_opaque_token(CLIENT_SECRET_BYTES)
        secret_hash = await self._hasher.hash(client_secret)
        await self._store.update_client(client_id, {"client_secret_hash": secret_hash})

        logger.info("Regenerated secret for client %s", client_id)
        return client_secret

    async def delete_client(self, client_id: str) -> None:
        """Delete a client together with every code and token issued to it."""
        if not await self._store.delete_client(client_id):
            raise oauth_error(INVALID_CLIENT, "Client not found", status_code=404)
        logger.info("Deleted client %s", client_id)

    # ========== Helpers ==========

    def _check_redirect_uris(self, redirect_uris: list[str]) -> None:
        for uri in redirect_uris:
            if not self.is_valid_redirect_uri(uri):
                raise oauth_error(INVALID_REQUEST, f"Invalid redirect URI: {uri}")

    def _check_scopes(self, scopes: list[str]) -> None:
        valid = self.valid_scopes
        for scope in scopes:
            if scope not in valid:
                raise oauth_error(INVALID_SCOPE, f"Invalid scope: {scope}")

    def is_valid_redirect_uri(self, uri: str) -> bool:
        """
        Check the format of a redirect URI at registration time.

        Allowed:
        - https:// URLs
        - http:// loopback URLs (localhost, 127.0.0.1, ::1)
        - Custom schemes (myapp://callback) when enabled in settings

        Rejected: fragments and wildcards.
        """
        if not uri or "#" in uri or "*" in uri:
            return False

        try:
            parts = urlsplit(uri)
        except ValueError:
            return False

        scheme = parts.scheme.lower()
        if scheme == "https":
            return bool(parts.hostname)
        if scheme == "http":
            return parts.hostname in LOOPBACK_HOSTS
        if scheme in ("javascript", "data", "file"):
            return False
        if scheme and self._settings.oauth2_allow_custom_scheme_redirects:
            return True
        return False


def to_client_info(client: StoredClient) -> ClientInfo:
    """Public view of a stored client."""
    return ClientInfo.model_validate(client.model_dump(exclude={"id", "client_secret_hash"}))
