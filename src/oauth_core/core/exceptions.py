"""Custom exceptions for the OAuth2 authorization server."""

from .constants import ERROR_DESCRIPTIONS, INVALID_GRANT


# ========================================
# Base Exceptions
# ========================================


class OAuthServerError(Exception):
    """Base exception for all authorization server errors."""


# ========================================
# Protocol Exceptions
# ========================================


class OAuthError(OAuthServerError):
    """An RFC 6749 error response carried as an exception.

    The token and introspection endpoints serialise it as a JSON error body with
    ``status_code``; the authorization endpoint encodes it into the redirect URL.
    """

    def __init__(
        self,
        code: str,
        description: str | None = None,
        status_code: int = 400,
        error_uri: str | None = None,
    ):
        self.code = code
        self.description = description or ERROR_DESCRIPTIONS.get(code, code)
        self.status_code = status_code
        self.error_uri = error_uri
        super().__init__(f"{code}: {self.description}")

    def to_dict(self) -> dict[str, str]:
        body = {"error": self.code, "error_description": self.description}
        if self.error_uri:
            body["error_uri"] = self.error_uri
        return body


class AuthorizationCodeReplayError(OAuthError):
    """A used authorization code was presented again.

    Carries the user and client the code was bound to so that the caller can
    revoke every token issued to that pair.
    """

    def __init__(self, user_id: str, client_id: str):
        super().__init__(INVALID_GRANT, "Authorization code already used")
        self.user_id = user_id
        self.client_id = client_id


def oauth_error(
    code: str,
    description: str | None = None,
    status_code: int = 400,
) -> OAuthError:
    """Build an OAuthError, using the standard description when none is given."""
    return OAuthError(code, description, status_code)


# ========================================
# Guard Exceptions
# ========================================


class AuthenticationError(OAuthServerError):
    """The caller could not be authenticated."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        self.message = message
        super().__init__(message)


class InsufficientScopeError(AuthenticationError):
    """The caller is authenticated but lacks a required scope."""

    status_code = 403

    def __init__(self, required: frozenset[str] | set[str]):
        self.required = frozenset(required)
        super().__init__(f"Insufficient scope: requires {' '.join(sorted(self.required))}")


# ========================================
# Infrastructure Exceptions
# ========================================


class StorageError(OAuthServerError):
    """The token store failed to complete an operation."""


class ConfigurationError(OAuthServerError):
    """Configuration validation failed."""
