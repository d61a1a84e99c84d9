"""
Event Recording Service

This service writes click and impression events, the raw data the
analytics engine aggregates.

Design Decisions:
- Events are immutable once written
- Impression uniqueness is decided at write time: an impression is not
  unique when the same IP viewed the same URL within the dedup window
- The traffic source is derived from the referrer when the event is written
- Designed to be called from background tasks so the response is not blocked
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.setting import settings
from app.core.validators import extract_source
from app.db.models import Click, Impression


class EventRecorder:
    """
    Service for recording URL events.

    Commit is handled by the caller (background task or test).
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = system_clock,
        dedup_window_minutes: Optional[int] = None,
    ):
        """
        Initialize the recorder with a database session.

        Args:
            session: Async database session for database operations
            clock: Source of event timestamps
            dedup_window_minutes: Window for unique impressions
                (defaults to IMPRESSION_DEDUP_WINDOW_MINUTES)
        """
        self.session = session
        self.clock = clock
        self.dedup_window_minutes = (
            dedup_window_minutes
            if dedup_window_minutes is not None
            else settings.IMPRESSION_DEDUP_WINDOW_MINUTES
        )

    async def has_recent_impression(self, url_id: int, ip_address: str) -> bool:
        """Whether ``ip_address`` produced an impression of ``url_id`` within the dedup window."""
        since = self.clock.now() - timedelta(minutes=self.dedup_window_minutes)
        statement = select(func.count(Impression.id)).where(
            Impression.url_id == url_id,
            Impression.ip_address == ip_address,
            Impression.timestamp >= since,
        )
        result = await self.session.execute(statement)
        return result.scalar_one() > 0

    async def record_impression(
        self,
        url_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
    ) -> Impression:
        """
        Record an impression of a URL.

        Impressions without an IP address cannot be deduplicated and count
        as unique.
        """
        is_unique = True
        if ip_address:
            is_unique = not await self.has_recent_impression(url_id, ip_address)

        impression = Impression(
            url_id=url_id,
            timestamp=self.clock.now(),
            ip_address=ip_address,
            user_agent=user_agent,
            referrer=referrer or None,
            is_unique=is_unique,
            source=extract_source(referrer),
        )

        self.session.add(impression)
        await self.session.flush()
        return impression

    async def record_click(
        self,
        url_id: int,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
        country: Optional[str] = None,
        device_type: Optional[str] = None,
        browser: Optional[str] = None,
    ) -> Click:
        """
        Record a click through a URL.

        ``country`` comes from the geo-IP lookup of the caller and may be None.
        """
        click = Click(
            url_id=url_id,
            clicked_at=self.clock.now(),
            ip_address=ip_address,
            user_agent=user_agent,
            referrer=referrer or None,
            country=country,
            device_type=device_type,
            browser=browser,
        )

        self.session.add(click)
        await self.session.flush()
        return click
