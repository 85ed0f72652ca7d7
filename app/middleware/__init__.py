"""
Middleware components for request processing.

This package contains:
- Request context (request ID, IP address, user agent)
- Exception handlers mapping service errors to the error body
"""

from app.middleware.error_handlers import register_exception_handlers
from app.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "register_exception_handlers",
]
