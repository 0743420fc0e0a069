"""Hashing of client secrets, codes and tokens."""

import asyncio
import hashlib
import secrets

from passlib.context import CryptContext

from oauth_core.config import Settings


def hash_token(value: str) -> str:
    """SHA-256 hex digest used as the storage key of codes and tokens."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_opaque_token(num_bytes: int) -> str:
    """Random base64url value carrying ``num_bytes`` bytes of entropy."""
    return secrets.token_urlsafe(num_bytes)


class SecretHasher:
    """Memory-hard hashing of client secrets through passlib.

    The primitive is slow on purpose, so ``hash`` and ``verify`` run it in a
    worker thread instead of blocking the event loop.
    """

    def __init__(self, context: CryptContext):
        self._context = context

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecretHasher":
        context = CryptContext(
            schemes=[settings.oauth2_secret_hash_scheme],
            **settings.get_secret_hash_options(),
        )
        return cls(context)

    async def hash(self, secret: str) -> str:
        return await asyncio.to_thread(self._context.hash, secret)

    async def verify(self, secret: str, secret_hash: str) -> bool:
        try:
            return await asyncio.to_thread(self._context.verify, secret, secret_hash)
        except ValueError:
            # Malformed or foreign hash
            return False

    def needs_update(self, secret_hash: str) -> bool:
        return self._context.needs_update(secret_hash)
