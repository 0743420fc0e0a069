"""
OAuth2 route registration.

This module provides a clean interface to build the Starlette routes of the
authorization server, using the route handlers from oauth_core.auth.routes.

Architecture:
- Separates route registration (this module) from route handlers (routes.py)
- Creates closure adapters to inject the application context
"""

from typing import TYPE_CHECKING

from starlette.routing import Route

from oauth_core.core.logging import logger

if TYPE_CHECKING:
    from oauth_core.core.context import AppContext


def setup_oauth2_routes(context: "AppContext") -> list[Route]:
    """
    Build the OAuth2 routes bound to an application context.

    Registers:
    - /.well-known/oauth-authorization-server (RFC 8414)
    - /health
    - /oauth/authorize, /oauth/authorize/info (GET)
    - /oauth/authorize/approve, /oauth/authorize/deny (POST)
    - /oauth/token, /oauth/revoke, /oauth/introspect (POST)
    - /oauth/clients[/{client_id}[/regenerate-secret]] (client management)

    Args:
        context: Application context holding the orchestrator and guard

    Returns:
        List of Starlette routes

    Example:
        >>> from starlette.applications import Starlette
        >>> from oauth_core.config import get_settings
        >>> from oauth_core.core import build_app_context
        >>>
        >>> context = build_app_context(get_settings())
        >>> app = Starlette(routes=setup_oauth2_routes(context))
    """
    from oauth_core.auth import routes

    def bind(handler):
        async def endpoint(request):
            return await handler(request, context)

        endpoint.__name__ = handler.__name__
        endpoint.__doc__ = handler.__doc__
        return endpoint

    route_list = [
        # Metadata and health
        Route(
            "/.well-known/oauth-authorization-server",
            bind(routes.authorization_server_metadata),
            methods=["GET"],
        ),
        Route("/health", bind(routes.health_check), methods=["GET"]),
        # Authorization flow
        Route("/oauth/authorize", bind(routes.authorize), methods=["GET"]),
        Route("/oauth/authorize/info", bind(routes.authorize_info), methods=["GET"]),
        Route("/oauth/authorize/approve", bind(routes.authorize_approve), methods=["POST"]),
        Route("/oauth/authorize/deny", bind(routes.authorize_deny), methods=["POST"]),
        # Token endpoints
        Route("/oauth/token", bind(routes.token_endpoint), methods=["POST"]),
        Route("/oauth/revoke", bind(routes.revoke_endpoint), methods=["POST"]),
        Route("/oauth/introspect", bind(routes.introspect_endpoint), methods=["POST"]),
        # Client management
        Route("/oauth/clients", bind(routes.list_clients), methods=["GET"]),
        Route("/oauth/clients", bind(routes.create_client), methods=["POST"]),
        Route("/oauth/clients/{client_id}", bind(routes.get_client), methods=["GET"]),
        Route("/oauth/clients/{client_id}", bind(routes.update_client), methods=["PATCH"]),
        Route("/oauth/clients/{client_id}", bind(routes.delete_client), methods=["DELETE"]),
        Route(
            "/oauth/clients/{client_id}/regenerate-secret",
            bind(routes.regenerate_client_secret),
            methods=["POST"],
        ),
    ]

    logger.info(f"✓ OAuth2 endpoints registered ({len(route_list)} routes)")
    return route_list
