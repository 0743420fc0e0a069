"""Test helpers shared across test modules."""

import asyncio
import time

from jose import jwt

from oauth_core.config import Settings
from oauth_core.storage.memory import InMemoryOAuthStore

JWT_SECRET = "test-session-secret"
ISSUER = "https://auth.example.com"
REDIRECT_URI = "https://example.com/callback"


class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment's .env file."""
    values = {
        "_env_file": None,
        "environment": "test",
        "oauth2_issuer": ISSUER,
        "oauth2_cleanup_interval": 0,
        "argon2_time_cost": 1,
        "argon2_memory_cost": 32,
        "jwt_secret_key": JWT_SECRET,
    }
    values.update(overrides)
    return Settings(**values)


def make_session_token(
    user_id: str,
    tenant_id: str | None = None,
    secret: str = JWT_SECRET,
    expires_in: int = 3600,
    **claims,
) -> str:
    """Sign an end-user session JWT."""
    now = int(time.time())
    payload = {"sub": user_id, "iat": now, "exp": now + expires_in, **claims}
    if tenant_id:
        payload["tenant_id"] = tenant_id
    return jwt.encode(payload, secret, algorithm="HS256")


class RacingCodeStore(InMemoryOAuthStore):
    """
    In-memory store that holds the first ``racers`` code lookups until all of
    them have read the record, so concurrent redemptions all see it unused.
    """

    def __init__(self, racers: int):
        super().__init__()
        self.racers = racers
        self.fetched = 0
        self.all_fetched = asyncio.Event()
        self.mark_results: list[bool] = []

    async def get_code(self, code_hash: str):
        stored = await super().get_code(code_hash)
        if not self.all_fetched.is_set():
            self.fetched += 1
            if self.fetched >= self.racers:
                self.all_fetched.set()
            await self.all_fetched.wait()
        return stored

    async def mark_code_used(self, code_hash: str) -> bool:
        won = await super().mark_code_used(code_hash)
        self.mark_results.append(won)
        return won
