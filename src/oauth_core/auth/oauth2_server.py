"""
OAuth2 Authorization Server orchestration.

Composes the client registry, code issuer and token issuer into the RFC flows:
- Authorization Code Grant with PKCE (RFC 6749 Section 4.1, RFC 7636)
- Client Credentials Grant (RFC 6749 Section 4.4)
- Refresh Token Grant with rotation (RFC 6749 Section 6)
- Token Revocation (RFC 7009)
- Token Introspection (RFC 7662)
- Authorization Server Metadata (RFC 8414)

Every operation takes the caller's RequestContext as its first argument.
"""

import logging
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from oauth_core.config import Settings
from oauth_core.core.constants import (
    ACCESS_DENIED,
    GRANT_AUTHORIZATION_CODE,
    GRANT_CLIENT_CREDENTIALS,
    GRANT_REFRESH_TOKEN,
    HINT_REFRESH_TOKEN,
    INVALID_CLIENT,
    INVALID_GRANT,
    INVALID_REQUEST,
    INVALID_SCOPE,
    PKCE_METHODS,
    RESPONSE_TYPE_CODE,
    SUPPORTED_GRANT_TYPES,
    UNAUTHORIZED_CLIENT,
    UNSUPPORTED_GRANT_TYPE,
)
from oauth_core.core.context import RequestContext
from oauth_core.core.decorators import track_request
from oauth_core.core.exceptions import (
    AuthenticationError,
    AuthorizationCodeReplayError,
    oauth_error,
)
from oauth_core.storage.models import StoredClient

from .clients import ClientRegistry
from .codes import AuthorizationCodeIssuer
from .models import (
    AuthorizationGrant,
    ConsentClient,
    ConsentInfo,
    GrantState,
    IntrospectionResult,
    ScopeInfo,
    TokenResponse,
)
from .scopes import describe_scopes, format_scopes, is_subset, parse_scopes, validate_scopes
from .tokens import TokenIssuer

logger = logging.getLogger(__name__)


def build_redirect_url(redirect_uri: str, params: Mapping[str, str | None]) -> str:
    """Append parameters to a redirect URI, keeping its existing query."""
    parts = urlsplit(redirect_uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, value) for key, value in params.items() if value is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))


class OAuthOrchestrator:
    """
    OAuth2 Authorization Server.

    Features:
    - Single-use authorization codes with replay containment
    - PKCE, mandatory for public clients unless disabled
    - Opaque, hash-stored tokens with refresh rotation
    - Fail-soft revocation and authenticated introspection
    """

    def __init__(
        self,
        clients: ClientRegistry,
        tokens: TokenIssuer,
        codes: AuthorizationCodeIssuer,
        settings: Settings,
    ):
        self.clients = clients
        self.tokens = tokens
        self.codes = codes
        self.settings = settings
        self.issuer = settings.oauth2_issuer

    # ========== Metadata ==========

    def get_authorization_server_metadata(self) -> dict:
        """
        Get OAuth 2.0 Authorization Server Metadata (RFC 8414).

        Returns:
            Authorization server metadata
        """
        auth_methods = ["client_secret_post", "client_secret_basic"]
        return {
            "issuer": self.issuer,
            "authorization_endpoint": f"{self.issuer}/oauth/authorize",
            "token_endpoint": f"{self.issuer}/oauth/token",
            "revocation_endpoint": f"{self.issuer}/oauth/revoke",
            "introspection_endpoint": f"{self.issuer}/oauth/introspect",
            "response_types_supported": [RESPONSE_TYPE_CODE],
            "grant_types_supported": sorted(SUPPORTED_GRANT_TYPES),
            "code_challenge_methods_supported": list(PKCE_METHODS),
            "token_endpoint_auth_methods_supported": [*auth_methods, "none"],
            "revocation_endpoint_auth_methods_supported": [*auth_methods, "none"],
            "introspection_endpoint_auth_methods_supported": auth_methods,
            "scopes_supported": self.settings.get_oauth2_scopes_list(),
        }

    # ========== Authorization Endpoint ==========

    async def verify_redirect_target(self, client_id: str | None, redirect_uri: str | None) -> bool:
        """Whether errors may be reported by redirecting to ``redirect_uri``."""
        client = await self.clients.get_client(client_id)
        if client is None or not client.is_active:
            return False
        return self.clients.validate_redirect_uri(client, redirect_uri)

    @track_request("authorize")
    async def initiate_authorization(
        self,
        ctx: RequestContext,
        response_type: str | None,
        client_id: str | None,
        redirect_uri: str | None,
        scope: str | None = None,
        state: str | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> AuthorizationGrant:
        """Issue an authorization code to the authenticated user of ``ctx``."""
        if not ctx.user_id:
            raise AuthenticationError()

        logger.debug("Flow for client %s: %s", client_id, GrantState.INITIATED.value)
        grant = await self.codes.initiate_authorization(
            client_id=client_id,
            redirect_uri=redirect_uri,
            user_id=ctx.user_id,
            response_type=response_type,
            scope=scope,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            tenant_id=ctx.tenant_id,
        )
        logger.debug("Flow for client %s: %s", client_id, GrantState.CODE_ISSUED.value)
        return grant

    @track_request("authorize.info")
    async def get_consent_info(
        self,
        ctx: RequestContext,
        client_id: str | None,
        redirect_uri: str | None,
        scope: str | None = None,
    ) -> ConsentInfo:
        """Client display data and scope labels for a consent screen."""
        client, requested = await self.codes.validate_authorization_request(
            client_id, redirect_uri, scope
        )
        return ConsentInfo(
            client=ConsentClient(
                id=client.client_id,
                attributes={"name": client.name, "description": client.description},
            ),
            scopes=[ScopeInfo(**info) for info in describe_scopes(requested)],
        )

    async def approve_authorization(
        self,
        ctx: RequestContext,
        client_id: str | None,
        redirect_uri: str | None,
        scope: str | None = None,
        state: str | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> str:
        """Issue a code after consent and return the redirect URL carrying it."""
        grant = await self.initiate_authorization(
            ctx,
            RESPONSE_TYPE_CODE,
            client_id,
            redirect_uri,
            scope=scope,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )
        return build_redirect_url(grant.redirect_uri, {"code": grant.code, "state": grant.state})

    @track_request("authorize.deny")
    async def deny_authorization(
        self,
        ctx: RequestContext,
        client_id: str | None,
        redirect_uri: str | None,
        state: str | None = None,
    ) -> str:
        """Return the redirect URL reporting that the user denied the request."""
        if not await self.verify_redirect_target(client_id, redirect_uri):
            raise oauth_error(INVALID_REQUEST, "Invalid client_id or redirect_uri")

        logger.info("User %s denied authorization for client %s", ctx.user_id, client_id)
        return build_redirect_url(
            redirect_uri,
            {
                "error": ACCESS_DENIED,
                "error_description": "The user denied the authorization request",
                "state": state,
            },
        )

    # ========== Token Endpoint ==========

    async def token(
        self,
        ctx: RequestContext,
        grant_type: str | None,
        params: Mapping[str, str | None],
    ) -> TokenResponse:
        """
        Dispatch a token request by grant type.

        Args:
            ctx: Request context
            grant_type: ``grant_type`` form field
            params: Remaining form fields plus ``client_id``/``client_secret``

        Returns:
            TokenResponse
        """
        if not grant_type:
            raise oauth_error(INVALID_REQUEST, "grant_type is required")

        if grant_type == GRANT_AUTHORIZATION_CODE:
            return await self.exchange_authorization_code(
                ctx,
                client_id=params.get("client_id"),
                client_secret=params.get("client_secret"),
                code=params.get("code"),
                redirect_uri=params.get("redirect_uri"),
                code_verifier=params.get("code_verifier"),
            )
        if grant_type == GRANT_CLIENT_CREDENTIALS:
            return await self.client_credentials_grant(
                ctx,
                client_id=params.get("client_id"),
                client_secret=params.get("client_secret"),
                scope=params.get("scope"),
            )
        if grant_type == GRANT_REFRESH_TOKEN:
            return await self.refresh_token_grant(
                ctx,
                client_id=params.get("client_id"),
                client_secret=params.get("client_secret"),
                refresh_token=params.get("refresh_token"),
                scope=params.get("scope"),
            )

        raise oauth_error(UNSUPPORTED_GRANT_TYPE)

    async def _authenticate_client(
        self,
        client_id: str | None,
        client_secret: str | None,
    ) -> StoredClient:
        client = await self.clients.validate_client(client_id, client_secret)
        if client is None:
            raise oauth_error(INVALID_CLIENT, status_code=401)
        return client

    @track_request("token.authorization_code")
    async def exchange_authorization_code(
        self,
        ctx: RequestContext,
        client_id: str | None,
        client_secret: str | None,
        code: str | None,
        redirect_uri: str | None,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        """
        Exchange an authorization code for an access/refresh token pair.

        A replayed code revokes every token of the code's user/client pair.
        """
        client = await self._authenticate_client(client_id, client_secret)

        if not self.clients.validate_grant_type(client, GRANT_AUTHORIZATION_CODE):
            raise oauth_error(
                UNAUTHORIZED_CLIENT,
                "Client not authorized for authorization_code grant",
            )

        try:
            stored = await self.codes.consume_code(
                code, client.client_id, redirect_uri, code_verifier
            )
        except AuthorizationCodeReplayError as e:
            await self.tokens.revoke_all_user_tokens(e.user_id, e.client_id)
            raise

        logger.debug("Flow for client %s: %s", client.client_id, GrantState.EXCHANGED.value)
        response = await self._issue_user_tokens(
            client,
            user_id=stored.user_id,
            tenant_id=stored.tenant_id,
            scope=stored.scope,
            grant_type=GRANT_AUTHORIZATION_CODE,
        )

        # A concurrent replay may have been recorded while tokens were issued
        if await self.codes.was_replayed(stored.code_hash):
            await self.tokens.revoke_all_user_tokens(stored.user_id, client.client_id)
            raise oauth_error(INVALID_GRANT, "Authorization code already used")

        logger.debug("Flow for client %s: %s", client.client_id, GrantState.TOKENS_ACTIVE.value)
        return response

    @track_request("token.client_credentials")
    async def client_credentials_grant(
        self,
        ctx: RequestContext,
        client_id: str | None,
        client_secret: str | None,
        scope: str | None = None,
    ) -> TokenResponse:
        """Issue an access token to a confidential client acting on its own behalf."""
        client = await self._authenticate_client(client_id, client_secret)

        if not client.is_confidential or not self.clients.validate_grant_type(
            client, GRANT_CLIENT_CREDENTIALS
        ):
            raise oauth_error(
                UNAUTHORIZED_CLIENT,
                "Client not authorized for client_credentials grant",
            )

        requested = parse_scopes(scope) or list(client.allowed_scopes)
        if not validate_scopes(requested, self.clients.valid_scopes) or not (
            self.clients.validate_scopes(client, requested)
        ):
            raise oauth_error(INVALID_SCOPE)

        granted_scope = format_scopes(requested)
        access = await self.tokens.generate_access_token(
            client_id=client.client_id,
            scope=granted_scope,
            grant_type=GRANT_CLIENT_CREDENTIALS,
            tenant_id=client.tenant_id,
            lifetime_seconds=client.access_token_lifetime,
        )
        return TokenResponse(
            access_token=access.token,
            expires_in=access.expires_in,
            scope=granted_scope,
        )

    @track_request("token.refresh_token")
    async def refresh_token_grant(
        self,
        ctx: RequestContext,
        client_id: str | None,
        client_secret: str | None,
        refresh_token: str | None,
        scope: str | None = None,
    ) -> TokenResponse:
        """
        Exchange a refresh token for a new access token.

        The scope may only narrow. With rotation enabled the presented token is
        revoked and replaced; otherwise it stays valid and no new refresh token
        is returned.
        """
        client = await self._authenticate_client(client_id, client_secret)

        if not refresh_token:
            raise oauth_error(INVALID_REQUEST, "refresh_token is required")

        current = await self.tokens.validate_refresh_token(refresh_token)
        if current is None:
            raise oauth_error(INVALID_GRANT, "Invalid refresh token")

        if current.client_id != client.client_id:
            raise oauth_error(INVALID_GRANT, "Client mismatch")

        granted_scope = current.scope
        if scope:
            requested = parse_scopes(scope)
            if not is_subset(requested, parse_scopes(current.scope)):
                raise oauth_error(INVALID_SCOPE, "Cannot expand scope beyond original grant")
            granted_scope = format_scopes(requested)

        access = await self.tokens.generate_access_token(
            client_id=client.client_id,
            scope=granted_scope,
            grant_type=GRANT_REFRESH_TOKEN,
            user_id=current.user_id,
            tenant_id=current.tenant_id,
            lifetime_seconds=client.access_token_lifetime,
        )

        if not self.settings.oauth2_rotate_refresh_tokens:
            counter = await self.tokens.record_refresh_use(refresh_token)
            logger.debug("Refresh token kept in service (rotation %s)", counter)
            return TokenResponse(
                access_token=access.token,
                expires_in=access.expires_in,
                scope=granted_scope,
            )

        await self.tokens.revoke_refresh_token(refresh_token, cascade=False)
        new_refresh = await self.tokens.generate_refresh_token(
            client_id=client.client_id,
            user_id=current.user_id,
            scope=granted_scope,
            access_token_id=access.token_id,
            tenant_id=current.tenant_id,
            lifetime_seconds=client.refresh_token_lifetime,
            rotation_counter=current.rotation_counter + 1,
        )
        return TokenResponse(
            access_token=access.token,
            expires_in=access.expires_in,
            refresh_token=new_refresh.token,
            scope=granted_scope,
        )

    async def _issue_user_tokens(
        self,
        client: StoredClient,
        user_id: str,
        tenant_id: str | None,
        scope: str,
        grant_type: str,
    ) -> TokenResponse:
        access = await self.tokens.generate_access_token(
            client_id=client.client_id,
            scope=scope,
            grant_type=grant_type,
            user_id=user_id,
            tenant_id=tenant_id,
            lifetime_seconds=client.access_token_lifetime,
        )

        refresh = await self.tokens.generate_refresh_token(
            client_id=client.client_id,
            user_id=user_id,
            scope=scope,
            access_token_id=access.token_id,
            tenant_id=tenant_id,
            lifetime_seconds=client.refresh_token_lifetime,
        )

        return TokenResponse(
            access_token=access.token,
            expires_in=access.expires_in,
            refresh_token=refresh.token,
            scope=scope,
        )

    # ========== Revocation and Introspection ==========

    @track_request("revoke")
    async def revoke_token(
        self,
        ctx: RequestContext,
        token: str | None,
        client_id: str | None,
        client_secret: str | None = None,
        token_type_hint: str | None = None,
    ) -> None:
        """
        Revoke a token (RFC 7009).

        Never raises for invalid tokens or client credentials. Only tokens
        issued to the authenticated client are revoked.
        """
        if not token or not client_id:
            return

        client = await self.clients.validate_client(client_id, client_secret)
        if client is None:
            logger.info("Ignoring revocation request with invalid client credentials")
            return

        if token_type_hint == HINT_REFRESH_TOKEN:
            revokers = (self.tokens.revoke_refresh_token, self.tokens.revoke_access_token)
        else:
            revokers = (self.tokens.revoke_access_token, self.tokens.revoke_refresh_token)

        for revoke in revokers:
            if await revoke(token, client_id=client.client_id):
                logger.debug("Flow for client %s: %s", client.client_id, GrantState.REVOKED.value)
                return

    @track_request("introspect")
    async def introspect_token(
        self,
        ctx: RequestContext,
        token: str | None,
        client_id: str | None,
        client_secret: str | None,
        token_type_hint: str | None = None,
    ) -> IntrospectionResult:
        """Describe a token to an authenticated confidential client (RFC 7662)."""
        client = await self.clients.validate_client(client_id, client_secret)
        if client is None or not client.is_confidential:
            raise oauth_error(INVALID_CLIENT, status_code=401)

        result = await self.tokens.introspect_token(token, token_type_hint)
        if result.active:
            result.iss = self.issuer
        return result

    # ========== Maintenance ==========

    async def cleanup_expired(self) -> dict[str, int]:
        """Delete expired codes and tokens. Expiry is enforced at read time regardless."""
        return {
            "codes": await self.codes.cleanup_expired(),
            "tokens": await self.tokens.cleanup_expired(),
        }


