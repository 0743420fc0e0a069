"""
Authorization code lifecycle (RFC 6749 Section 4.1, RFC 7636).

Codes are single use. Consumption marks a code used with an atomic
compare-and-set in the store, so of several concurrent redemptions exactly one
wins; every other attempt is handled as a replay.
"""

import logging
import time
from collections.abc import Callable

from oauth_core.config import Settings
from oauth_core.core.constants import (
    AUTHORIZATION_CODE_BYTES,
    GRANT_AUTHORIZATION_CODE,
    INVALID_CLIENT,
    INVALID_GRANT,
    INVALID_REQUEST,
    INVALID_SCOPE,
    PKCE_METHOD_S256,
    RESPONSE_TYPE_CODE,
    UNAUTHORIZED_CLIENT,
    UNSUPPORTED_RESPONSE_TYPE,
)
from oauth_core.core.exceptions import AuthorizationCodeReplayError, oauth_error
from oauth_core.core.logging import redact
from oauth_core.storage.base import OAuthStore
from oauth_core.storage.models import StoredAuthCode, StoredClient

from .clients import ClientRegistry
from .hashing import generate_opaque_token, hash_token
from .models import AuthorizationGrant
from .pkce import PkceValidator
from .scopes import format_scopes, parse_scopes, validate_scopes

logger = logging.getLogger(__name__)


class AuthorizationCodeIssuer:
    """Issues, consumes and expires authorization codes."""

    def __init__(
        self,
        store: OAuthStore,
        clients: ClientRegistry,
        pkce: PkceValidator,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._clients = clients
        self._pkce = pkce
        self._settings = settings
        self._clock = clock

    async def validate_authorization_request(
        self,
        client_id: str | None,
        redirect_uri: str | None,
        scope: str | None = None,
    ) -> tuple[StoredClient, list[str]]:
        """
        Resolve the client and scopes of an authorization request.

        Returns:
            Tuple of (client, requested scopes with the client default applied)

        Raises:
            OAuthError: invalid_client, invalid_request, unauthorized_client or invalid_scope
        """
        client = await self._clients.get_client(client_id)
        if client is None or not client.is_active:
            raise oauth_error(INVALID_CLIENT, "Unknown client", status_code=401)

        if not self._clients.validate_redirect_uri(client, redirect_uri):
            raise oauth_error(INVALID_REQUEST, "Invalid redirect_uri")

        if not self._clients.validate_grant_type(client, GRANT_AUTHORIZATION_CODE):
            raise oauth_error(
                UNAUTHORIZED_CLIENT,
                "Client not authorized for authorization_code grant",
            )

        requested = parse_scopes(scope) or list(client.allowed_scopes)
        if not validate_scopes(requested, self._clients.valid_scopes):
            raise oauth_error(INVALID_SCOPE)
        if not self._clients.validate_scopes(client, requested):
            raise oauth_error(INVALID_SCOPE, "Requested scopes exceed allowed scopes")

        return client, requested

    async def initiate_authorization(
        self,
        client_id: str | None,
        redirect_uri: str | None,
        user_id: str,
        response_type: str | None = RESPONSE_TYPE_CODE,
        scope: str | None = None,
        state: str | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
        tenant_id: str | None = None,
    ) -> AuthorizationGrant:
        """
        Issue an authorization code for an authenticated end-user.

        Args:
            client_id: Requesting client
            redirect_uri: Must exactly match a registered URI
            user_id: Authenticated resource owner
            response_type: Must be ``code``
            scope: Space-delimited scope (defaults to the client's allowed scopes)
            state: Opaque value echoed back to the client
            code_challenge: PKCE challenge (mandatory for public clients by default)
            code_challenge_method: ``S256`` (default) or ``plain``
            tenant_id: Tenant of the resource owner, carried to the tokens

        Returns:
            AuthorizationGrant with the plaintext code, shown once
        """
        if response_type != RESPONSE_TYPE_CODE:
            raise oauth_error(UNSUPPORTED_RESPONSE_TYPE, "Only response_type=code is supported")

        client, requested = await self.validate_authorization_request(
            client_id, redirect_uri, scope
        )

        require_pkce = (
            not client.is_confidential and self._settings.oauth2_require_pkce_for_public_clients
        )
        if require_pkce and not code_challenge:
            raise oauth_error(INVALID_REQUEST, "code_challenge required for public clients")

        method = None
        if code_challenge:
            method = code_challenge_method or PKCE_METHOD_S256
            if not self._pkce.is_valid_challenge_method(method):
                raise oauth_error(INVALID_REQUEST, "Invalid code_challenge_method")

        code = generate_opaque_token(AUTHORIZATION_CODE_BYTES)
        now = self._clock()
        granted_scope = format_scopes(requested)
        stored = StoredAuthCode(
            code_hash=hash_token(code),
            client_id=client.client_id,
            user_id=user_id,
            tenant_id=tenant_id,
            redirect_uri=redirect_uri,
            scope=granted_scope,
            state=state,
            code_challenge=code_challenge or None,
            code_challenge_method=method,
            expires_at=now + self._settings.oauth2_authorization_code_lifetime,
            created_at=now,
        )
        await self._store.create_code(stored)

        logger.info(
            "Issued authorization code %s for client %s, user %s",
            redact(stored.code_hash),
            client.client_id,
            user_id,
        )
        return AuthorizationGrant(
            code=code,
            state=state,
            redirect_uri=redirect_uri,
            scope=granted_scope,
        )

    async def consume_code(
        self,
        code: str | None,
        client_id: str,
        redirect_uri: str | None,
        code_verifier: str | None = None,
    ) -> StoredAuthCode:
        """
        Redeem an authorization code exactly once.

        Returns:
            The consumed code record

        Raises:
            AuthorizationCodeReplayError: The code was already used, or a
                concurrent redemption won the race
            OAuthError: invalid_grant or invalid_request for any other mismatch
        """
        if not code:
            raise oauth_error(INVALID_REQUEST, "code is required")

        code_hash = hash_token(code)
        stored = await self._store.get_code(code_hash)
        if stored is None:
            raise oauth_error(INVALID_GRANT, "Invalid authorization code")

        if stored.is_used:
            await self._store.flag_code_replay(code_hash)
            logger.warning("Replay of authorization code %s detected", redact(code_hash))
            raise AuthorizationCodeReplayError(stored.user_id, stored.client_id)

        if stored.expires_at <= self._clock():
            raise oauth_error(INVALID_GRANT, "Authorization code expired")

        if stored.client_id != client_id:
            raise oauth_error(INVALID_GRANT, "Client mismatch")

        if stored.redirect_uri != redirect_uri:
            raise oauth_error(INVALID_GRANT, "Redirect URI mismatch")

        if stored.code_challenge:
            if not code_verifier:
                raise oauth_error(INVALID_REQUEST, "code_verifier required")
            if not self._pkce.validate_challenge(
                code_verifier,
                stored.code_challenge,
                stored.code_challenge_method or PKCE_METHOD_S256,
            ):
                raise oauth_error(INVALID_GRANT, "Invalid code_verifier")

        if not await self._store.mark_code_used(code_hash):
            await self._store.flag_code_replay(code_hash)
            logger.warning("Concurrent redemption of code %s detected", redact(code_hash))
            raise AuthorizationCodeReplayError(stored.user_id, stored.client_id)

        stored.is_used = True
        return stored

    async def was_replayed(self, code_hash: str) -> bool:
        """Whether a replay was recorded against a code after it was consumed."""
        stored = await self._store.get_code(code_hash)
        return stored is not None and stored.replay_detected

    async def cleanup_expired(self) -> int:
        count = await self._store.delete_expired_codes(self._clock())
        if count:
            logger.info("Deleted %d expired authorization code(s)", count)
        return count
