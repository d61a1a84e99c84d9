"""
URL Source

Read access to URL records and user timezone preferences, both owned by
other services (URL CRUD, auth) and only read here.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import TTLCache
from app.core.cache_registry import user_timezone_key
from app.db.models import ShortURL, User

logger = logging.getLogger(__name__)


class URLSource(ABC):
    """Contract for looking up URLs and their owners' preferences."""

    @abstractmethod
    async def get_url(self, url_id: int) -> Optional[ShortURL]:
        pass

    @abstractmethod
    async def list_urls(self, user_id: int) -> list[ShortURL]:
        pass

    @abstractmethod
    async def get_user_timezone(self, user_id: int) -> Optional[str]:
        pass


class SQLURLSource(URLSource):
    """URLSource backed by the urls/users tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_url(self, url_id: int) -> Optional[ShortURL]:
        """
        Retrieve a URL that has not been soft-deleted.

        Returns:
            ShortURL object if found, None otherwise
        """
        statement = select(ShortURL).where(ShortURL.id == url_id, ShortURL.deleted_at.is_(None))
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def list_urls(self, user_id: int) -> list[ShortURL]:
        statement = (
            select(ShortURL)
            .where(ShortURL.user_id == user_id, ShortURL.deleted_at.is_(None))
            .order_by(ShortURL.created_at.desc(), ShortURL.id.desc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def get_user_timezone(self, user_id: int) -> Optional[str]:
        statement = select(User.timezone).where(User.id == user_id)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()


class CachedUserTimezones:
    """
    Stored timezone preferences behind a TTL cache.

    "No preference" is cached as an empty string so repeated lookups for
    users without a timezone do not hit the database. Lookup failures are
    logged and treated as "no preference": lifecycle status display must not
    fail because of them.
    """

    def __init__(self, source: URLSource, cache: TTLCache[str]):
        self.source = source
        self.cache = cache

    async def get(self, user_id: int) -> Optional[str]:
        key = user_timezone_key(user_id)

        cached = self.cache.get(key)
        if cached is not None:
            return cached or None

        try:
            timezone_name = await self.source.get_user_timezone(user_id)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load timezone for user {user_id}: {str(e)}")
            return None

        self.cache.set(key, timezone_name or "")
        return timezone_name
