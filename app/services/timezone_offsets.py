"""
Timezone Offset Cache

Resolves an IANA timezone name to its current offset from UTC in minutes,
caching the answer.

Unknown or malformed names never raise: they resolve to 0 (UTC), and that
fallback is cached with the same TTL so a later fix to the timezone data is
picked up once the entry expires.
"""

import logging
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.cache import TTLCache
from app.core.cache_registry import timezone_offset_key
from app.core.clock import Clock, system_clock
from app.core.setting import settings

logger = logging.getLogger(__name__)


class TimezoneOffsetCache:
    """Cached timezone name -> UTC offset (minutes) lookup."""

    def __init__(
        self,
        cache: TTLCache[int],
        clock: Clock = system_clock,
        ttl_ms: Optional[int] = None,
    ):
        """
        Args:
            cache: Shared TTL cache holding the offsets
            clock: Source of the instant the offset is computed for
            ttl_ms: Lifetime of each entry (defaults to TIMEZONE_CACHE_TTL_MS)
        """
        self.cache = cache
        self.clock = clock
        self.ttl_ms = ttl_ms if ttl_ms is not None else settings.TIMEZONE_CACHE_TTL_MS

    def offset_minutes(self, timezone_name: str) -> int:
        """
        Offset of ``timezone_name`` from UTC in minutes (east positive).

        Returns 0 for names that cannot be resolved.
        """
        key = timezone_offset_key(timezone_name)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            offset = self._resolve(timezone_name)
        except (ZoneInfoNotFoundError, ValueError, TypeError, OSError) as e:
            logger.warning(f"Invalid timezone {timezone_name!r}, falling back to UTC: {e}")
            offset = 0

        self.cache.set(key, offset, self.ttl_ms)
        return offset

    def _resolve(self, timezone_name: str) -> int:
        # Same instant seen from UTC and from the target zone
        instant = self.clock.now()
        local = instant.astimezone(ZoneInfo(timezone_name))
        return round(local.utcoffset().total_seconds() / 60)
