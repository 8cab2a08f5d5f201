"""Request context middleware for correlation ID tracking."""

import uuid
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gigster.core.logging import document_ctx, request_id_ctx, user_id_ctx

RequestResponseEndpoint = Callable[[Request], Awaitable[Response]]


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Sets per-request context variables for structured logging.

    Echoes (or generates) ``X-Request-ID`` and clears the user and document
    correlation values left over from a previous request on this task.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_ctx.set(request_id)
        user_id_ctx.set(None)
        document_ctx.set(None)
        structlog.contextvars.clear_contextvars()

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
