"""
Main entry point for the OAuth2 authorization server.

Builds the Starlette application from settings and runs it with uvicorn.
"""

import sys
import traceback
from contextlib import asynccontextmanager

import uvicorn
from starlette.applications import Starlette

from oauth_core.auth.setup import setup_oauth2_routes
from oauth_core.config import Settings, get_settings
from oauth_core.core import configure_logging, logger
from oauth_core.core.context import build_app_context, oauth_lifespan
from oauth_core.middleware import setup_middleware
from oauth_core.storage.base import OAuthStore


def create_app(
    settings: Settings | None = None,
    store: OAuthStore | None = None,
) -> Starlette:
    """
    Create the Starlette application.

    Args:
        settings: Server settings (loaded from the environment when omitted)
        store: Token store (created from settings when omitted)

    Returns:
        Configured Starlette application
    """
    settings = settings or get_settings()
    configure_logging(debug=settings.debug)
    context = build_app_context(settings, store=store)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        async with oauth_lifespan(context):
            yield

    app = Starlette(
        debug=settings.debug,
        routes=setup_oauth2_routes(context),
        middleware=setup_middleware(settings),
        lifespan=lifespan,
    )
    app.state.context = context

    logger.info(f"Authorization server created (issuer: {settings.oauth2_issuer})")
    logger.info(f"  - Store backend: {settings.oauth2_store_backend}")
    logger.info(f"  - Valid scopes: {', '.join(settings.get_oauth2_scopes_list())}")
    return app


def run() -> None:
    """Run the server with uvicorn."""
    try:
        settings = get_settings()
        app = create_app(settings)
    except Exception as e:
        logger.error(f"Failed to initialize authorization server: {e}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        sys.exit(1)

    logger.info(f"Starting server on {settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
