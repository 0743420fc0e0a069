"""Logging configuration for the OAuth2 authorization server.

Records carry the id of the request being served (set by the request-id
middleware and by ``track_request``). The verbosity follows ``Settings.debug``
once the application is created.
"""

import logging
import sys
from contextvars import ContextVar

LOGGER_NAME = "oauth-core"
PACKAGE_LOGGER_NAME = "oauth_core"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(request_id)s%(message)s"

# Id of the request being served, propagated across awaits
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Logging filter that adds request_id to log records."""

    def filter(self, record):
        request_id = request_id_ctx.get()
        record.request_id = f"[{request_id}] " if request_id else ""
        return True


def _install_request_filter(handler: logging.Handler) -> None:
    if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
        handler.addFilter(RequestIdFilter())


def configure_logging(debug: bool = False) -> logging.Logger:
    """
    Configure the server loggers.

    Safe to call more than once: handlers get a single request-id filter and
    only the levels change.

    Args:
        debug: Log at DEBUG instead of INFO (``Settings.debug``)

    Returns:
        The ``oauth-core`` logger
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    for handler in logging.root.handlers:
        _install_request_filter(handler)

    level = logging.DEBUG if debug else logging.INFO
    server_logger = logging.getLogger(LOGGER_NAME)
    for name in (LOGGER_NAME, PACKAGE_LOGGER_NAME):
        logging.getLogger(name).setLevel(level)

    if debug:
        server_logger.debug("Debug logging enabled")
    return server_logger


def redact(value: str | None) -> str:
    """Shorten a hash or identifier for log output."""
    if not value:
        return "<none>"
    return f"{value[:8]}..."


logger = configure_logging()
