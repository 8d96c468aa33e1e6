"""
HTTP middleware for GeneratorLog
Handles security headers and request audit logging
"""
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from generatorlog.core.logger import get_logger


# The API serves JSON only, so nothing may be framed, scripted or embedded
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
    "Cache-Control": "no-store",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log requests for audit purposes"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = get_logger("requests")

        client_ip = request.client.host if request.client else "unknown"
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} - IP: {client_ip} - "
            f"Status: {response.status_code} - {elapsed_ms:.1f}ms"
        )

        return response
