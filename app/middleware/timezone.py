"""
Request Timezone Middleware

Reads a per-request timezone override from the `tz` query parameter and
stores it on `request.state.timezone`, where the lifecycle status dependency
picks it up. Values that are not plausible IANA names are ignored.
"""

import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.validators import sanitize_timezone

logger = logging.getLogger(__name__)


class TimezoneMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        raw = request.query_params.get("tz")
        timezone = sanitize_timezone(raw) if raw else None
        if raw and timezone is None:
            logger.debug(f"Ignoring malformed timezone override: {raw!r}")
        request.state.timezone = timezone
        return await call_next(request)


def add_timezone_middleware(app):
    app.add_middleware(TimezoneMiddleware)
