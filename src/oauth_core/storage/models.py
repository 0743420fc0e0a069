"""Pydantic models for OAuth entity storage.

These models define the structure for persistent storage of OAuth entities
including clients, authorization codes, access tokens, and refresh tokens.
Codes and tokens are keyed by the SHA-256 hash of their plaintext value; the
plaintext itself is never stored.
"""

import time
import uuid

from pydantic import BaseModel, Field


def _new_id() -> str:
    return str(uuid.uuid4())


class StoredClient(BaseModel):
    """OAuth client stored in persistent storage."""

    id: str = Field(default_factory=_new_id)
    client_id: str
    client_secret_hash: str | None = None  # None for public clients
    name: str
    description: str | None = None
    redirect_uris: list[str] = Field(default_factory=list)
    allowed_scopes: list[str] = Field(default_factory=list)
    allowed_grant_types: list[str] = Field(default_factory=list)
    is_confidential: bool = True
    is_active: bool = True
    access_token_lifetime: int | None = None  # None = server default
    refresh_token_lifetime: int | None = None
    owner_id: str | None = None
    tenant_id: str | None = None
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)


class StoredAuthCode(BaseModel):
    """Authorization code stored in persistent storage."""

    id: str = Field(default_factory=_new_id)
    code_hash: str
    client_id: str
    user_id: str
    tenant_id: str | None = None
    redirect_uri: str
    scope: str
    state: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    is_used: bool = False
    replay_detected: bool = False
    expires_at: float
    created_at: float = Field(default_factory=time.time)


class StoredAccessToken(BaseModel):
    """Access token stored in persistent storage."""

    id: str = Field(default_factory=_new_id)
    token_hash: str
    client_id: str
    user_id: str | None = None  # None for client_credentials
    tenant_id: str | None = None
    scope: str
    grant_type: str
    is_revoked: bool = False
    expires_at: float
    created_at: float = Field(default_factory=time.time)


class StoredRefreshToken(BaseModel):
    """Refresh token stored in persistent storage."""

    id: str = Field(default_factory=_new_id)
    token_hash: str
    client_id: str
    user_id: str
    tenant_id: str | None = None
    scope: str
    access_token_id: str
    rotation_counter: int = 0
    is_revoked: bool = False
    expires_at: float
    created_at: float = Field(default_factory=time.time)
