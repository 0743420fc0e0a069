"""Core functionality for the OAuth2 authorization server."""

from .constants import (
    ACCESS_DENIED,
    ERROR_DESCRIPTIONS,
    INVALID_CLIENT,
    INVALID_GRANT,
    INVALID_REQUEST,
    INVALID_SCOPE,
    SERVER_ERROR,
    UNAUTHORIZED_CLIENT,
    UNSUPPORTED_GRANT_TYPE,
    UNSUPPORTED_RESPONSE_TYPE,
)
from .exceptions import (
    AuthenticationError,
    AuthorizationCodeReplayError,
    ConfigurationError,
    InsufficientScopeError,
    OAuthError,
    OAuthServerError,
    StorageError,
    oauth_error,
)
from .logging import configure_logging, logger
from .decorators import track_request
from .context import (
    AppContext,
    RequestContext,
    build_app_context,
    get_app_context,
    oauth_lifespan,
    set_app_context,
)

__all__ = [
    # Core
    "AppContext",
    "RequestContext",
    "build_app_context",
    "configure_logging",
    "get_app_context",
    "logger",
    "oauth_lifespan",
    "set_app_context",
    "track_request",
    # Exceptions
    "AuthenticationError",
    "AuthorizationCodeReplayError",
    "ConfigurationError",
    "InsufficientScopeError",
    "OAuthError",
    "OAuthServerError",
    "StorageError",
    "oauth_error",
    # Error codes - most commonly used
    "ACCESS_DENIED",
    "ERROR_DESCRIPTIONS",
    "INVALID_CLIENT",
    "INVALID_GRANT",
    "INVALID_REQUEST",
    "INVALID_SCOPE",
    "SERVER_ERROR",
    "UNAUTHORIZED_CLIENT",
    "UNSUPPORTED_GRANT_TYPE",
    "UNSUPPORTED_RESPONSE_TYPE",
]
