"""HTTP middleware for the authorization server."""

from .request_context import RequestContextMiddleware
from .setup import setup_middleware

__all__ = ["RequestContextMiddleware", "setup_middleware"]
