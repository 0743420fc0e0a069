"""Protocol constants for the OAuth2 authorization server.

This module contains the error codes, grant types and sizing values shared by
all components, so that none of them are spelled out as magic strings.
"""

# ========================================
# Error Codes (RFC 6749 Section 5.2, RFC 7009 Section 2.2.1)
# ========================================

INVALID_REQUEST = "invalid_request"
INVALID_CLIENT = "invalid_client"
INVALID_GRANT = "invalid_grant"
UNAUTHORIZED_CLIENT = "unauthorized_client"
UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
INVALID_SCOPE = "invalid_scope"
ACCESS_DENIED = "access_denied"
UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
SERVER_ERROR = "server_error"
TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"

ERROR_DESCRIPTIONS: dict[str, str] = {
    INVALID_REQUEST: "The request is missing a required parameter or is otherwise malformed.",
    INVALID_CLIENT: "Client authentication failed.",
    INVALID_GRANT: "The provided authorization code or refresh token is invalid or expired.",
    UNAUTHORIZED_CLIENT: "The client is not authorized to use this grant type.",
    UNSUPPORTED_GRANT_TYPE: "The grant type is not supported.",
    INVALID_SCOPE: "The requested scope is invalid or exceeds the allowed scope.",
    ACCESS_DENIED: "The resource owner denied the request.",
    UNSUPPORTED_RESPONSE_TYPE: "The response type is not supported.",
    SERVER_ERROR: "An unexpected error occurred on the authorization server.",
    TEMPORARILY_UNAVAILABLE: "The authorization server is temporarily unavailable.",
}

# ========================================
# Grant and Response Types
# ========================================

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_CLIENT_CREDENTIALS = "client_credentials"
GRANT_REFRESH_TOKEN = "refresh_token"

SUPPORTED_GRANT_TYPES = frozenset(
    {GRANT_AUTHORIZATION_CODE, GRANT_CLIENT_CREDENTIALS, GRANT_REFRESH_TOKEN},
)
DEFAULT_GRANT_TYPES = [GRANT_AUTHORIZATION_CODE, GRANT_REFRESH_TOKEN]

RESPONSE_TYPE_CODE = "code"

# ========================================
# Token Types and Hints
# ========================================

TOKEN_TYPE_BEARER = "Bearer"
TOKEN_TYPE_REFRESH = "refresh_token"

HINT_ACCESS_TOKEN = "access_token"
HINT_REFRESH_TOKEN = "refresh_token"

# ========================================
# PKCE (RFC 7636)
# ========================================

PKCE_METHOD_S256 = "S256"
PKCE_METHOD_PLAIN = "plain"
PKCE_METHODS = (PKCE_METHOD_S256, PKCE_METHOD_PLAIN)

PKCE_VERIFIER_MIN_LENGTH = 43
PKCE_VERIFIER_MAX_LENGTH = 128
PKCE_VERIFIER_DEFAULT_LENGTH = 64
PKCE_VERIFIER_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"

# ========================================
# Entropy (bytes of randomness before base64url encoding)
# ========================================

AUTHORIZATION_CODE_BYTES = 32
ACCESS_TOKEN_BYTES = 32  # 256 bits
REFRESH_TOKEN_BYTES = 48  # 384 bits
CLIENT_SECRET_BYTES = 32

# ========================================
# Default Lifetimes (seconds)
# ========================================

DEFAULT_ACCESS_TOKEN_LIFETIME = 3600
DEFAULT_REFRESH_TOKEN_LIFETIME = 604800
DEFAULT_AUTHORIZATION_CODE_LIFETIME = 600

# ========================================
# Redirect URI Policy
# ========================================

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
