"""Application context and lifecycle management for the OAuth2 authorization server."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from .logging import logger, request_id_ctx

if TYPE_CHECKING:
    from oauth_core.auth.clients import ClientRegistry
    from oauth_core.auth.codes import AuthorizationCodeIssuer
    from oauth_core.auth.guards import CompositeAuthenticator
    from oauth_core.auth.oauth2_server import OAuthOrchestrator
    from oauth_core.auth.pkce import PkceValidator
    from oauth_core.auth.tokens import TokenIssuer
    from oauth_core.config import Settings
    from oauth_core.storage.base import OAuthStore


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller on whose behalf an orchestrator operation runs.

    Passed explicitly as the first argument of every orchestrator call.
    """

    user_id: str | None = None
    tenant_id: str | None = None
    request_id: str | None = None

    @classmethod
    def anonymous(cls) -> "RequestContext":
        return cls(request_id=request_id_ctx.get())


@dataclass
class AppContext:
    """Shared components of a running authorization server."""

    settings: "Settings"
    store: "OAuthStore"
    pkce: "PkceValidator"
    clients: "ClientRegistry"
    tokens: "TokenIssuer"
    codes: "AuthorizationCodeIssuer"
    orchestrator: "OAuthOrchestrator"
    guard: "CompositeAuthenticator"
    sweeper_task: asyncio.Task | None = None


# Global context storage
_app_context: Optional[AppContext] = None


def set_app_context(context: AppContext | None) -> None:
    """Store the application context globally."""
    global _app_context
    _app_context = context


def get_app_context() -> Optional[AppContext]:
    """Get the stored application context."""
    return _app_context


def build_app_context(
    settings: "Settings",
    store: Optional["OAuthStore"] = None,
    clock: Any = None,
) -> AppContext:
    """Wire the authorization server components by constructor injection.

    Args:
        settings: Server settings
        store: Token store (created from settings when omitted)
        clock: Optional zero-argument callable returning epoch seconds

    Returns:
        AppContext: The assembled components
    """
    from oauth_core.auth.clients import ClientRegistry
    from oauth_core.auth.codes import AuthorizationCodeIssuer
    from oauth_core.auth.guards import (
        CompositeAuthenticator,
        JwtAuthenticator,
        OAuthTokenAuthenticator,
    )
    from oauth_core.auth.hashing import SecretHasher
    from oauth_core.auth.oauth2_server import OAuthOrchestrator
    from oauth_core.auth.pkce import PkceValidator
    from oauth_core.auth.tokens import TokenIssuer
    from oauth_core.storage.factory import create_store

    if store is None:
        store = create_store(settings)

    clock_kwargs = {"clock": clock} if clock is not None else {}

    pkce = PkceValidator()
    hasher = SecretHasher.from_settings(settings)
    clients = ClientRegistry(store, hasher, settings, **clock_kwargs)
    tokens = TokenIssuer(store, settings, **clock_kwargs)
    codes = AuthorizationCodeIssuer(store, clients, pkce, settings, **clock_kwargs)
    orchestrator = OAuthOrchestrator(clients, tokens, codes, settings)
    guard = CompositeAuthenticator(
        [
            OAuthTokenAuthenticator(tokens),
            JwtAuthenticator(
                settings.jwt_secret_key,
                algorithm=settings.jwt_algorithm,
                issuer=settings.jwt_issuer,
            ),
        ],
    )

    return AppContext(
        settings=settings,
        store=store,
        pkce=pkce,
        clients=clients,
        tokens=tokens,
        codes=codes,
        orchestrator=orchestrator,
        guard=guard,
    )


async def run_expiry_sweeper(orchestrator: "OAuthOrchestrator", interval: int) -> None:
    """Periodically delete expired codes and tokens.

    Expiry is enforced at read time, so this only reclaims storage.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await orchestrator.cleanup_expired()
        except Exception as e:
            logger.error(f"Error in expiry sweeper: {e}")


@asynccontextmanager
async def oauth_lifespan(context: AppContext) -> AsyncIterator[AppContext]:
    """Initialize the store and background sweeper for the lifetime of the app."""
    logger.info("Initializing authorization server context...")
    await context.store.initialize()
    set_app_context(context)

    interval = context.settings.oauth2_cleanup_interval
    if interval > 0:
        context.sweeper_task = asyncio.create_task(
            run_expiry_sweeper(context.orchestrator, interval),
        )
        logger.info(f"✓ Expiry sweeper started (interval={interval}s)")
    else:
        logger.info("Expiry sweeper disabled")

    try:
        yield context
    finally:
        if context.sweeper_task is not None:
            context.sweeper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await context.sweeper_task
            context.sweeper_task = None
        await context.store.close()
        set_app_context(None)
        logger.info("Authorization server context closed")
