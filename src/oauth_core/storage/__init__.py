"""Persistence layer for OAuth clients, codes and tokens."""

from .base import OAuthStore
from .factory import create_store
from .file import FileOAuthStore
from .memory import InMemoryOAuthStore
from .models import StoredAccessToken, StoredAuthCode, StoredClient, StoredRefreshToken

__all__ = [
    "FileOAuthStore",
    "InMemoryOAuthStore",
    "OAuthStore",
    "StoredAccessToken",
    "StoredAuthCode",
    "StoredClient",
    "StoredRefreshToken",
    "create_store",
]
