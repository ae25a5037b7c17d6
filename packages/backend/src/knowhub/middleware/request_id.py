"""Request ID middleware — one traceable id per HTTP request.

Learn: mutation handlers forward their own X-Request-ID when they POST
to /api/v1/events, so a `knowhub.publish_failed` warning here carries
the id of the write that caused it. Ids from outside are only trusted
up to MAX_REQUEST_ID_LENGTH visible characters; anything else is
replaced with a fresh UUID before it reaches the logs.
"""

import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

logger = structlog.get_logger()


def resolve_request_id(incoming: Optional[str]) -> str:
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and echo it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug(
            "knowhub.request",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
