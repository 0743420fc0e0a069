"""
Request authentication for protected endpoints.

Authentication methods (in order of precedence):
1. OAuth2 opaque access token (Authorization: Bearer <token>)
2. End-user session JWT (Authorization: Bearer <jwt>)

Each method is an ``Authenticator``; ``CompositeAuthenticator`` tries them in
order and applies the per-operation scope table.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from jose import ExpiredSignatureError, JWTError, jwt
from starlette.requests import Request

from oauth_core.core.context import RequestContext
from oauth_core.core.exceptions import AuthenticationError, InsufficientScopeError
from oauth_core.core.logging import request_id_ctx

from .scopes import parse_scopes
from .tokens import TokenIssuer

logger = logging.getLogger(__name__)

AUTH_TYPE_OAUTH = "oauth"
AUTH_TYPE_JWT = "jwt"

# Scopes an OAuth access token must carry for each operation.
OPERATION_SCOPES: dict[str, frozenset[str]] = {
    "clients.list": frozenset({"admin"}),
    "clients.create": frozenset({"admin"}),
    "clients.get": frozenset({"admin"}),
    "clients.update": frozenset({"admin"}),
    "clients.delete": frozenset({"admin"}),
    "clients.regenerate_secret": frozenset({"admin"}),
}

# Operations that only an end-user session may perform.
USER_SESSION_OPERATIONS: frozenset[str] = frozenset(
    {"authorize", "authorize.info", "authorize.approve", "authorize.deny"},
)


@dataclass(frozen=True)
class Principal:
    """An authenticated caller."""

    auth_type: str
    user_id: str | None = None
    tenant_id: str | None = None
    client_id: str | None = None
    scopes: frozenset[str] = field(default_factory=frozenset)

    def to_context(self) -> RequestContext:
        return RequestContext(
            user_id=self.user_id,
            tenant_id=self.tenant_id,
            request_id=request_id_ctx.get(),
        )


def extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@runtime_checkable
class Authenticator(Protocol):
    """
    One way of authenticating a request.

    ``authenticate`` returns ``(principal, None)`` on success,
    ``(None, error)`` when the credential is recognised but rejected, and
    ``(None, None)`` when the request carries nothing this authenticator
    understands.
    """

    auth_type: str

    async def authenticate(
        self, request: Request
    ) -> tuple[Principal | None, AuthenticationError | None]: ...


class OAuthTokenAuthenticator:
    """Validates opaque OAuth2 access tokens issued by this server."""

    auth_type = AUTH_TYPE_OAUTH

    def __init__(self, tokens: TokenIssuer):
        self.tokens = tokens

    async def authenticate(
        self, request: Request
    ) -> tuple[Principal | None, AuthenticationError | None]:
        token = extract_bearer_token(request)
        if token is None:
            return None, None

        info = await self.tokens.validate_access_token(token)
        if info is None:
            # Might be a session JWT
            return None, None

        return (
            Principal(
                auth_type=self.auth_type,
                user_id=info.user_id,
                tenant_id=info.tenant_id,
                client_id=info.client_id,
                scopes=frozenset(parse_scopes(info.scope)),
            ),
            None,
        )


class JwtAuthenticator:
    """Validates end-user session JWTs (``sub`` = user, ``tenant_id`` = tenant)."""

    auth_type = AUTH_TYPE_JWT

    def __init__(self, secret_key: str, algorithm: str = "HS256", issuer: str | None = None):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer

    async def authenticate(
        self, request: Request
    ) -> tuple[Principal | None, AuthenticationError | None]:
        token = extract_bearer_token(request)
        if token is None:
            return None, None

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_aud": False},
            )
        except ExpiredSignatureError:
            return None, AuthenticationError("Session expired")
        except JWTError as e:
            logger.debug("JWT validation failed: %s", e)
            return None, AuthenticationError("Invalid authentication")

        user_id = payload.get("sub")
        if not user_id:
            return None, AuthenticationError("Invalid authentication")

        return (
            Principal(
                auth_type=self.auth_type,
                user_id=str(user_id),
                tenant_id=payload.get("tenant_id"),
            ),
            None,
        )


class CompositeAuthenticator:
    """Tries each authenticator in order; the first principal wins."""

    def __init__(
        self,
        authenticators: Iterable[Authenticator],
        operation_scopes: Mapping[str, frozenset[str]] | None = None,
        user_session_operations: Iterable[str] = USER_SESSION_OPERATIONS,
    ):
        self.authenticators = list(authenticators)
        self.operation_scopes = dict(
            OPERATION_SCOPES if operation_scopes is None else operation_scopes
        )
        self.user_session_operations = frozenset(user_session_operations)

    async def authenticate(
        self,
        request: Request,
        allowed_types: Iterable[str] | None = None,
    ) -> Principal:
        """
        Authenticate a request.

        Raises:
            AuthenticationError: No authenticator accepted the request
        """
        if extract_bearer_token(request) is None:
            raise AuthenticationError("Missing authorization")

        allowed = frozenset(allowed_types) if allowed_types is not None else None
        error: AuthenticationError | None = None
        for authenticator in self.authenticators:
            if allowed is not None and authenticator.auth_type not in allowed:
                continue
            principal, failure = await authenticator.authenticate(request)
            if principal is not None:
                return principal
            error = failure or error

        raise error or AuthenticationError("Invalid authentication")

    async def authorize(self, request: Request, operation: str) -> Principal:
        """
        Authenticate a request for a named operation.

        OAuth principals must hold every scope listed for the operation in the
        scope table; session principals act with the user's full authority.

        Raises:
            AuthenticationError: 401
            InsufficientScopeError: 403
        """
        allowed = (
            [AUTH_TYPE_JWT] if operation in self.user_session_operations else None
        )
        principal = await self.authenticate(request, allowed_types=allowed)

        required = self.operation_scopes.get(operation, frozenset())
        if principal.auth_type == AUTH_TYPE_OAUTH and not required <= principal.scopes:
            logger.info(
                "Client %s lacks scope for %s (has %s)",
                principal.client_id,
                operation,
                " ".join(sorted(principal.scopes)),
            )
            raise InsufficientScopeError(required)

        return principal
