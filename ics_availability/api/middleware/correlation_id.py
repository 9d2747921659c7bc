"""Request correlation ID middleware.

Every request gets a correlation id, taken from the client when it sends one
or generated otherwise. The id is stored in a context variable so that log
records and the upstream feed request can carry it, and it is echoed back in
the ``X-Request-ID`` response header.
"""

import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar

from aiohttp import web

# Uses contextvars for async-safe propagation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


@web.middleware
async def correlation_id_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Extract or generate correlation ID for request tracking.

    Priority:
    1. X-Request-ID from client
    2. X-Correlation-ID from client
    3. Generate new UUID
    """
    correlation_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid.uuid4())
    )

    token = request_id_var.set(correlation_id)
    request["correlation_id"] = correlation_id
    try:
        response = await handler(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = correlation_id
    return response


def get_request_id() -> str:
    """Get current request correlation ID from context.

    Returns:
        Current request correlation ID, or "no-request-id" if not set
    """
    request_id = request_id_var.get()
    return request_id if request_id else "no-request-id"
