"""
RequestContext Middleware - request tracing for every request.

Each request gets:
- request_id: UUID, echoed back in the X-Request-ID response header
- ip_address: client IP (X-Forwarded-For only from trusted proxies)
- user_agent: client user agent string

The values are stored on request.state and bound into structlog's
contextvars, so every log line emitted while handling the request
(ingestion, store events, stream lifecycle) carries all three.

An incoming X-Request-ID header is reused so a caller such as the
add-message CLI can correlate its own output with server logs.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
CONTEXT_KEYS = ("request_id", "ip_address", "user_agent")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Add request context to all incoming requests.

    Request.state Namespace Convention:
    - request_id, ip_address, user_agent: Set by RequestContextMiddleware
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        ip_address = self._extract_client_ip(request)
        user_agent = request.headers.get("user-agent")

        request.state.request_id = request_id
        request.state.ip_address = ip_address
        request.state.user_agent = user_agent

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        logger.debug("Request started", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars(*CONTEXT_KEYS)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _extract_client_ip(self, request: Request) -> str | None:
        """
        Client IP address, trusting X-Forwarded-For only when
        TRUST_X_FORWARDED_FOR is on and the peer is in TRUSTED_PROXY_IPS.
        """
        direct = request.client.host if request.client else None
        if not settings.TRUST_X_FORWARDED_FOR or direct not in settings.TRUSTED_PROXY_IPS:
            return direct

        forwarded_for = request.headers.get("x-forwarded-for")
        if not forwarded_for:
            return direct

        # "client, proxy1, proxy2": first entry is the original client
        return forwarded_for.split(",")[0].strip()
