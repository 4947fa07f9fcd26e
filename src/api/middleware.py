"""
HTTP middleware for SuperTeacher.

Security headers and request logging with the correlation id set by
asgi-correlation-id.
"""

import time

from asgi_correlation_id import correlation_id
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HSTS only for HTTPS
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with correlation ID, method, path, status, latency."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        with logger.contextualize(correlation_id=correlation_id.get() or "unknown"):
            logger.info(f"{request.method} {request.url.path}")
            response = await call_next(request)
            latency_ms = (time.time() - start_time) * 1000
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({latency_ms:.0f} ms)")
            return response
