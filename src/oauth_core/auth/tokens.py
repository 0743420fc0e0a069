"""
Opaque token issuance, validation and revocation.

Tokens are cryptographically random base64url strings. Only their SHA-256
hash is stored, so a token can be validated but never recovered from storage.
"""

import logging
import time
from collections.abc import Callable

from oauth_core.config import Settings
from oauth_core.core.constants import (
    ACCESS_TOKEN_BYTES,
    HINT_REFRESH_TOKEN,
    INVALID_SCOPE,
    REFRESH_TOKEN_BYTES,
    TOKEN_TYPE_BEARER,
    TOKEN_TYPE_REFRESH,
)
from oauth_core.core.exceptions import oauth_error
from oauth_core.core.logging import redact
from oauth_core.storage.base import OAuthStore
from oauth_core.storage.models import StoredAccessToken, StoredRefreshToken

from .hashing import generate_opaque_token, hash_token
from .models import (
    AccessTokenInfo,
    IntrospectionResult,
    IssuedAccessToken,
    IssuedRefreshToken,
    RefreshTokenInfo,
)
from .scopes import is_subset, parse_scopes

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Generates, validates, rotates and revokes access and refresh tokens."""

    def __init__(
        self,
        store: OAuthStore,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._settings = settings
        self._clock = clock

    # ========== Issuance ==========

    async def generate_access_token(
        self,
        client_id: str,
        scope: str,
        grant_type: str,
        user_id: str | None = None,
        tenant_id: str | None = None,
        lifetime_seconds: int | None = None,
    ) -> IssuedAccessToken:
        """
        Issue an access token.

        Args:
            client_id: Client the token is issued to
            scope: Space-delimited granted scope
            grant_type: Grant that produced the token
            user_id: Resource owner (None for client_credentials)
            tenant_id: Tenant of the resource owner
            lifetime_seconds: Lifetime (defaults to OAUTH2_ACCESS_TOKEN_LIFETIME)

        Returns:
            IssuedAccessToken with the plaintext token, shown once
        """
        token = generate_opaque_token(ACCESS_TOKEN_BYTES)
        expires_in = lifetime_seconds or self._settings.oauth2_access_token_lifetime
        now = self._clock()

        stored = StoredAccessToken(
            token_hash=hash_token(token),
            client_id=client_id,
            user_id=user_id,
            tenant_id=tenant_id,
            scope=scope,
            grant_type=grant_type,
            expires_at=now + expires_in,
            created_at=now,
        )
        await self._store.create_access_token(stored)

        logger.debug("Issued access token %s for client %s", redact(stored.token_hash), client_id)
        return IssuedAccessToken(token=token, expires_in=expires_in, token_id=stored.id)

    async def generate_refresh_token(
        self,
        client_id: str,
        user_id: str,
        scope: str,
        access_token_id: str,
        tenant_id: str | None = None,
        lifetime_seconds: int | None = None,
        rotation_counter: int = 0,
    ) -> IssuedRefreshToken:
        """
        Issue a refresh token paired with an access token.

        The refresh token scope must be contained in the scope of its access
        token.
        """
        access = await self._store.get_access_token_by_id(access_token_id)
        if access is not None and not is_subset(parse_scopes(scope), parse_scopes(access.scope)):
            raise oauth_error(INVALID_SCOPE, "Refresh token scope exceeds access token scope")

        token = generate_opaque_token(REFRESH_TOKEN_BYTES)
        lifetime = lifetime_seconds or self._settings.oauth2_refresh_token_lifetime
        now = self._clock()

        stored = StoredRefreshToken(
            token_hash=hash_token(token),
            client_id=client_id,
            user_id=user_id,
            tenant_id=tenant_id,
            scope=scope,
            access_token_id=access_token_id,
            rotation_counter=rotation_counter,
            expires_at=now + lifetime,
            created_at=now,
        )
        await self._store.create_refresh_token(stored)

        logger.debug("Issued refresh token %s for client %s", redact(stored.token_hash), client_id)
        return IssuedRefreshToken(token=token, token_id=stored.id)

    # ========== Validation ==========

    async def validate_access_token(self, token: str | None) -> AccessTokenInfo | None:
        """Return token metadata, or None if unknown, revoked or expired."""
        if not token:
            return None
        stored = await self._store.get_access_token(hash_token(token))
        if stored is None or stored.is_revoked or stored.expires_at <= self._clock():
            return None
        return AccessTokenInfo(
            token_id=stored.id,
            client_id=stored.client_id,
            user_id=stored.user_id,
            tenant_id=stored.tenant_id,
            scope=stored.scope,
            grant_type=stored.grant_type,
            expires_at=stored.expires_at,
            issued_at=stored.created_at,
        )

    async def validate_refresh_token(self, token: str | None) -> RefreshTokenInfo | None:
        """Return token metadata including the rotation counter, or None."""
        if not token:
            return None
        stored = await self._store.get_refresh_token(hash_token(token))
        if stored is None or stored.is_revoked or stored.expires_at <= self._clock():
            return None
        return RefreshTokenInfo(
            token_id=stored.id,
            client_id=stored.client_id,
            user_id=stored.user_id,
            tenant_id=stored.tenant_id,
            scope=stored.scope,
            access_token_id=stored.access_token_id,
            rotation_counter=stored.rotation_counter,
            expires_at=stored.expires_at,
            issued_at=stored.created_at,
        )

    async def record_refresh_use(self, token: str) -> int | None:
        """Increment the rotation counter of a refresh token kept in service."""
        return await self._store.increment_rotation_counter(hash_token(token))

    # ========== Revocation ==========

    async def revoke_access_token(self, token: str, client_id: str | None = None) -> bool:
        """
        Revoke an access token. Unknown or already revoked tokens are a no-op.

        Args:
            token: Plaintext access token
            client_id: When given, only a token issued to this client is revoked

        Returns:
            True if a matching token was found
        """
        token_hash = hash_token(token)
        stored = await self._store.get_access_token(token_hash)
        if stored is None or (client_id is not None and stored.client_id != client_id):
            return False
        await self._store.revoke_access_token(token_hash)
        logger.info("Revoked access token %s", redact(token_hash))
        return True

    async def revoke_refresh_token(
        self,
        token: str,
        client_id: str | None = None,
        cascade: bool = True,
    ) -> bool:
        """
        Revoke a refresh token and, with ``cascade``, the access token it was
        issued with (RFC 7009 Section 2.1).

        Same no-op semantics as ``revoke_access_token``.
        """
        token_hash = hash_token(token)
        stored = await self._store.get_refresh_token(token_hash)
        if stored is None or (client_id is not None and stored.client_id != client_id):
            return False
        await self._store.revoke_refresh_token(token_hash)
        if cascade:
            await self._store.revoke_access_token_by_id(stored.access_token_id)
        logger.info("Revoked refresh token %s", redact(token_hash))
        return True

    async def revoke_all_user_tokens(self, user_id: str, client_id: str) -> int:
        count = await self._store.revoke_tokens_for_user_client(user_id, client_id)
        logger.warning("Revoked %d token(s) of user %s for client %s", count, user_id, client_id)
        return count

    # ========== Introspection ==========

    async def introspect_token(
        self,
        token: str | None,
        token_type_hint: str | None = None,
    ) -> IntrospectionResult:
        """
        Describe a token (RFC 7662).

        Access tokens are tried first unless the hint names a refresh token;
        the hint never excludes the other type. Unknown, revoked and expired
        tokens all give the same ``{"active": false}`` result.
        """
        if token_type_hint == HINT_REFRESH_TOKEN:
            lookups = (self._introspect_refresh, self._introspect_access)
        else:
            lookups = (self._introspect_access, self._introspect_refresh)

        for lookup in lookups:
            result = await lookup(token)
            if result is not None:
                return result
        return IntrospectionResult.inactive()

    async def _introspect_access(self, token: str | None) -> IntrospectionResult | None:
        info = await self.validate_access_token(token)
        if info is None:
            return None
        return IntrospectionResult(
            active=True,
            scope=info.scope,
            client_id=info.client_id,
            token_type=TOKEN_TYPE_BEARER,
            exp=int(info.expires_at),
            iat=int(info.issued_at),
            sub=info.user_id,
            aud=info.client_id,
        )

    async def _introspect_refresh(self, token: str | None) -> IntrospectionResult | None:
        info = await self.validate_refresh_token(token)
        if info is None:
            return None
        return IntrospectionResult(
            active=True,
            scope=info.scope,
            client_id=info.client_id,
            token_type=TOKEN_TYPE_REFRESH,
            exp=int(info.expires_at),
            iat=int(info.issued_at),
            sub=info.user_id,
            aud=info.client_id,
        )

    # ========== Maintenance ==========

    async def cleanup_expired(self) -> int:
        count = await self._store.delete_expired_tokens(self._clock())
        if count:
            logger.info("Deleted %d expired token(s)", count)
        return count
