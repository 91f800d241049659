"""
Request context middleware.

WHAT: Middleware that assigns a request id to every request and makes it
available for the rest of the request.

WHY: Alert creation fans out into tickets, notifications and websocket
pushes. A single request id carried through every log line ties those
together when one of the best-effort deliveries fails.

HOW: Stores the context in a ContextVar so the logging filter, services
and DAOs can read it without a request object. An incoming X-Request-ID
header is honoured so upstream proxies can supply the id.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


logger = logging.getLogger(__name__)


@dataclass
class RequestContext:
    """
    Container for request-scoped context data.

    Fields:
    - request_id: Identifier for log correlation
    """

    request_id: str


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise
    """
    return _request_context.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures and stores request context.

    Adds an X-Request-ID header to every response and logs the request
    duration at DEBUG level.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        context = RequestContext(request_id=request_id)
        token = _request_context.set(context)

        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({(time.perf_counter() - started) * 1000:.1f}ms)"
            )
            return response
        finally:
            _request_context.reset(token)
