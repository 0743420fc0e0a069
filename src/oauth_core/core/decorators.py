"""Decorators for the OAuth2 authorization server."""

import functools
import traceback
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import ParamSpec, TypeVar

from .exceptions import OAuthError
from .logging import logger, request_id_ctx

P = ParamSpec("P")
R = TypeVar("R")


def track_request(
    operation: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator to track orchestrator operations with timing and error handling.

    Protocol errors (``OAuthError``) are expected outcomes and are logged at INFO;
    anything else is logged as an error. Both are re-raised unchanged.

    Args:
        operation: Name of the operation being tracked

    Returns:
        Decorated function with request tracking
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            # Reuse the id set by the HTTP middleware when there is one
            outer_request_id = request_id_ctx.get()
            request_id = outer_request_id or str(uuid.uuid4())[:8]
            token = request_id_ctx.set(request_id)
            start_time = datetime.now(UTC).timestamp()

            logger.debug("Starting %s", operation)

            try:
                result = await func(*args, **kwargs)
            except OAuthError as e:
                duration = datetime.now(UTC).timestamp() - start_time
                logger.info("Rejected %s after %.3fs: %s", operation, duration, e.code)
                raise
            except Exception as e:
                duration = datetime.now(UTC).timestamp() - start_time
                logger.error("Failed %s after %.3fs: %s", operation, duration, str(e))
                logger.debug("Traceback: %s", traceback.format_exc())
                raise
            else:
                duration = datetime.now(UTC).timestamp() - start_time
                logger.info("Completed %s in %.3fs", operation, duration)
            finally:
                request_id_ctx.reset(token)

            return result

        return wrapper

    return decorator
