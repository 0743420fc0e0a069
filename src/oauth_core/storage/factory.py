"""Factory for creating OAuth store instances."""

import logging

from oauth_core.config import Settings
from oauth_core.core.exceptions import ConfigurationError

from .base import OAuthStore
from .file import FileOAuthStore
from .memory import InMemoryOAuthStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> OAuthStore:
    """
    Create a store instance based on the configured backend.

    Args:
        settings: Server settings (``oauth2_store_backend``, ``oauth2_storage_dir``)

    Returns:
        OAuthStore instance

    Raises:
        ConfigurationError: If the backend is not supported
    """
    backend = settings.oauth2_store_backend.lower()

    if backend == "memory":
        logger.info("Using in-memory OAuth store")
        return InMemoryOAuthStore()
    if backend == "file":
        logger.info(f"Using file OAuth store at {settings.oauth2_storage_dir}")
        return FileOAuthStore(settings.oauth2_storage_dir)

    raise ConfigurationError(
        f"Unsupported store backend: {settings.oauth2_store_backend}. "
        "Supported backends: memory, file",
    )
