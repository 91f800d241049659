"""
Middleware package.

WHY: Middleware provides cross-cutting concerns (request correlation)
that apply to all requests.
"""

from arsenal.middleware.request_context import (
    RequestContextMiddleware,
    get_request_context,
    RequestContext,
)

__all__ = [
    "RequestContextMiddleware",
    "get_request_context",
    "RequestContext",
]
