"""
FastAPI Dependencies

Wiring between the HTTP layer and the services: the caller's identity, the
viewer context used for lifecycle status, and service construction from
the shared caches.

Authentication itself happens upstream; the gateway forwards the
authenticated user id in the X-User-Id header.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache_registry import CacheRegistry, get_caches
from app.core.clock import Clock, system_clock
from app.db.session import get_session
from app.services.aggregator import EventAggregator
from app.services.event_source import SQLEventSource
from app.services.lifecycle import LifecycleStatusService, ViewerContext
from app.services.stats_service import StatsService
from app.services.timezone_offsets import TimezoneOffsetCache
from app.services.url_source import CachedUserTimezones, SQLURLSource


def get_clock() -> Clock:
    """Clock used by request handlers (overridden in tests)."""
    return system_clock


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """
    Extract the authenticated user id forwarded by the gateway.

    Raises:
        HTTPException 401: If the header is missing or not an integer
    """
    if x_user_id is None or not x_user_id.strip().isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    return int(x_user_id.strip())


def get_url_source(session: AsyncSession = Depends(get_session)) -> SQLURLSource:
    return SQLURLSource(session)


def get_stats_service(session: AsyncSession = Depends(get_session)) -> StatsService:
    return StatsService(EventAggregator(SQLEventSource(session)))


def get_lifecycle_service(
    caches: CacheRegistry = Depends(get_caches),
    clock: Clock = Depends(get_clock),
) -> LifecycleStatusService:
    offsets = TimezoneOffsetCache(caches.timezone_offsets, clock=clock)
    return LifecycleStatusService(offsets, clock=clock)


async def get_viewer_context(
    request: Request,
    user_id: int = Depends(get_current_user_id),
    url_source: SQLURLSource = Depends(get_url_source),
    caches: CacheRegistry = Depends(get_caches),
) -> ViewerContext:
    """
    Collect the timezone hints of the current request.

    The stored preference is read through the user cache.
    """
    user_timezones = CachedUserTimezones(url_source, caches.user_timezones)
    return ViewerContext(
        user_timezone=await user_timezones.get(user_id),
        request_timezone=getattr(request.state, "timezone", None),
        timezone_header=request.headers.get("X-Timezone"),
        accept_language=request.headers.get("Accept-Language"),
    )
