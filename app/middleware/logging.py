"""
Request Logging Middleware

Writes one access-log line per request to the "link_analytics" logger:
method, path, status code, latency and client IP. The latency is also
returned to the caller in the X-Process-Time header.
"""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("link_analytics")


def client_ip(request: Request) -> str:
    """First address of X-Forwarded-For when behind a proxy, else the peer address."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class LoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        logger.info(
            f"{request.method} {request.url.path} "
            f"{response.status_code} {elapsed * 1000:.2f}ms "
            f"IP:{client_ip(request)}"
        )
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response


def add_logging_middleware(app):
    app.add_middleware(LoggingMiddleware)
