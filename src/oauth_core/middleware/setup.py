"""
Middleware configuration for the authorization server.

Architecture:
- Separates middleware configuration from main application logic
- Authentication is not a middleware concern here: protected handlers call
  the composite guard with their operation name
"""

from starlette.middleware import Middleware

from oauth_core.config import Settings
from oauth_core.core.logging import logger

from .request_context import RequestContextMiddleware


def setup_middleware(settings: Settings) -> list[Middleware]:
    """
    Configure middleware based on settings.

    Args:
        settings: Server settings

    Returns:
        List of configured Middleware instances

    Example:
        >>> from oauth_core.config import get_settings
        >>> from oauth_core.middleware.setup import setup_middleware
        >>>
        >>> middleware = setup_middleware(get_settings())
    """
    middleware = [Middleware(RequestContextMiddleware)]
    logger.info("✓ Request context middleware enabled")

    if settings.debug:
        logger.debug(f"Settings: {settings.to_dict()}")

    return middleware
