"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID bound to every log line)
"""

from barberflow.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
]
