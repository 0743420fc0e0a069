"""
Result and response models of the authorization server.

Plaintext codes and tokens only ever appear in the ``Issued*`` models and in
``TokenResponse``; every other model is safe to log or return repeatedly.
"""

from enum import Enum

from pydantic import BaseModel, Field

from oauth_core.core.constants import TOKEN_TYPE_BEARER


class GrantState(str, Enum):
    """Lifecycle of a single authorization flow instance."""

    INITIATED = "initiated"
    CODE_ISSUED = "code_issued"
    EXCHANGED = "exchanged"
    TOKENS_ACTIVE = "tokens_active"
    REVOKED = "revoked"
    EXPIRED = "expired"


# ========================================
# Client Registry
# ========================================


class ClientInfo(BaseModel):
    """Public view of a registered client (never includes the secret hash)."""

    client_id: str
    name: str
    description: str | None = None
    redirect_uris: list[str]
    allowed_scopes: list[str]
    allowed_grant_types: list[str]
    is_confidential: bool
    is_active: bool
    access_token_lifetime: int | None = None
    refresh_token_lifetime: int | None = None
    owner_id: str | None = None
    tenant_id: str | None = None
    created_at: float
    updated_at: float


class ClientCredentials(BaseModel):
    """A client together with its plaintext secret, returned exactly once."""

    client: ClientInfo
    client_secret: str | None = None


# ========================================
# Token Issuer
# ========================================


class IssuedAccessToken(BaseModel):
    token: str
    expires_in: int
    token_id: str


class IssuedRefreshToken(BaseModel):
    token: str
    token_id: str


class AccessTokenInfo(BaseModel):
    """Result of validating an access token."""

    token_id: str
    client_id: str
    user_id: str | None = None
    tenant_id: str | None = None
    scope: str
    grant_type: str
    expires_at: float
    issued_at: float


class RefreshTokenInfo(BaseModel):
    """Result of validating a refresh token."""

    token_id: str
    client_id: str
    user_id: str
    tenant_id: str | None = None
    scope: str
    access_token_id: str
    rotation_counter: int
    expires_at: float
    issued_at: float


class IntrospectionResult(BaseModel):
    """RFC 7662 introspection response.

    Inactive tokens serialise to ``{"active": false}`` only.
    """

    active: bool
    scope: str | None = None
    client_id: str | None = None
    token_type: str | None = None
    exp: int | None = None
    iat: int | None = None
    sub: str | None = None
    aud: str | None = None
    iss: str | None = None

    @classmethod
    def inactive(cls) -> "IntrospectionResult":
        return cls(active=False)

    def to_response(self) -> dict:
        return self.model_dump(exclude_none=True)


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5.1)."""

    access_token: str
    token_type: str = TOKEN_TYPE_BEARER
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None

    def to_response(self) -> dict:
        return self.model_dump(exclude_none=True)


# ========================================
# Authorization Flow
# ========================================


class AuthorizationGrant(BaseModel):
    """Outcome of a successful authorization request."""

    code: str
    state: str | None = None
    redirect_uri: str
    scope: str


class ConsentClient(BaseModel):
    id: str
    type: str = "oauth-clients"
    attributes: dict[str, str | None]


class ScopeInfo(BaseModel):
    scope: str
    name: str
    description: str


class ConsentInfo(BaseModel):
    """Data rendered by a consent screen."""

    client: ConsentClient
    scopes: list[ScopeInfo] = Field(default_factory=list)
