"""
Background Task Helpers

Provides helper functions for background tasks that create their own database sessions.
Background tasks cannot use the endpoint's session as it's closed after the endpoint returns.

Tracking must never fail a response: errors are logged, not raised.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.db.session import async_session_maker
from app.services.event_recorder import EventRecorder

logger = logging.getLogger(__name__)


async def record_impression_background(
    url_id: int,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
    session_maker: Optional[async_sessionmaker] = None,
) -> None:
    """
    Background task to record an impression.

    Creates its own database session as endpoint session is closed.

    Args:
        url_id: The URL that was viewed
        ip_address: IP address of the viewer
        user_agent: User agent string (optional)
        referrer: Referrer header (optional)
        session_maker: Session factory override (tests)
    """
    try:
        async with (session_maker or async_session_maker)() as session:
            recorder = EventRecorder(session)
            await recorder.record_impression(
                url_id=url_id,
                ip_address=ip_address,
                user_agent=user_agent,
                referrer=referrer,
            )
            await session.commit()
    except Exception as e:
        logger.error(
            f"Failed to record impression for URL {url_id}: {str(e)}",
            exc_info=True
        )


async def record_click_background(
    url_id: int,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
    country: Optional[str] = None,
    device_type: Optional[str] = None,
    browser: Optional[str] = None,
    session_maker: Optional[async_sessionmaker] = None,
) -> None:
    """
    Background task to record a click from the redirect path.

    Creates its own database session as endpoint session is closed.
    """
    try:
        async with (session_maker or async_session_maker)() as session:
            recorder = EventRecorder(session)
            await recorder.record_click(
                url_id=url_id,
                ip_address=ip_address,
                user_agent=user_agent,
                referrer=referrer,
                country=country,
                device_type=device_type,
                browser=browser,
            )
            await session.commit()
    except Exception as e:
        logger.error(
            f"Failed to record click for URL {url_id}: {str(e)}",
            exc_info=True
        )
