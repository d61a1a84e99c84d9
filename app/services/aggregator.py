"""
Event Aggregator

Computes comparable, time-windowed statistics from click and impression
events: period summaries, gapless time series, per-source breakdowns, top
days and per-URL leaderboards.

Design Decisions:
- Pure reads through an EventSource; safe to run concurrently
- Storage failures are never zeroed: they surface as AggregationFailedError
  with the original exception attached
- Week/month buckets are folded from daily counts so every bucket in the
  period is emitted, even with zero events
"""

import logging
from typing import Awaitable, Optional, TypeVar

from app.core.exceptions import AggregationFailedError
from app.core.setting import settings
from app.services.event_source import EventSource
from app.services.leaderboard import rank, validate_limit
from app.services.metrics import (
    AnalysisPeriod,
    LeaderboardEntry,
    MetricSummary,
    Scope,
    SourceBreakdown,
    TimeSeriesPoint,
)
from app.services.time_window import bucket_label, bucket_start, iter_buckets, validate_granularity

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventAggregator:
    """
    Aggregation over an event source.

    Used by the stats service for both scopes: a single URL, or all URLs of
    a user.
    """

    def __init__(self, source: EventSource):
        """
        Args:
            source: Where event counts are read from
        """
        self.source = source

    async def _read(self, operation: str, pending: Awaitable[T]) -> T:
        try:
            return await pending
        except Exception as e:
            logger.error(f"Aggregation '{operation}' failed: {str(e)}", exc_info=True)
            raise AggregationFailedError(operation, original_error=e) from e

    async def summarize(self, scope: Scope, period: AnalysisPeriod) -> MetricSummary:
        """Impression, unique impression and click totals with CTRs."""
        return await self._read("summarize", self.source.totals(scope, period))

    async def time_series(
        self,
        scope: Scope,
        period: AnalysisPeriod,
        granularity: str = "day",
    ) -> list[TimeSeriesPoint]:
        """
        Counts per day, ISO week or calendar month, in chronological order.

        Every bucket touching the period is present, with zero counts when
        nothing happened.
        """
        validate_granularity(granularity)
        daily = await self._read("time_series", self.source.daily_counts(scope, period))

        buckets = {start: [0, 0] for start in iter_buckets(period, granularity)}
        for counts in daily:
            if not period.contains(counts.day):
                continue
            totals = buckets[bucket_start(counts.day, granularity)]
            totals[0] += counts.impressions
            totals[1] += counts.clicks

        return [
            TimeSeriesPoint(
                date=bucket_label(start, granularity),
                impressions=impressions,
                clicks=clicks,
            )
            for start, (impressions, clicks) in buckets.items()
        ]

    async def by_source(self, scope: Scope, period: AnalysisPeriod) -> list[SourceBreakdown]:
        """Per-source counts ordered by impressions (desc), then source name."""
        sources = await self._read("by_source", self.source.source_counts(scope, period))
        return sorted(sources, key=lambda item: (-item.impressions, item.source))

    async def top_days(
        self,
        scope: Scope,
        period: AnalysisPeriod,
        limit: Optional[int] = None,
    ) -> list[TimeSeriesPoint]:
        """
        The days with the most clicks, ties broken by earlier date.

        Days without any event are not candidates.
        """
        if limit is None:
            limit = settings.TOP_DAYS_LIMIT
        if limit < 1:
            return []

        daily = await self._read("top_days", self.source.daily_counts(scope, period))
        active = [
            counts for counts in daily
            if counts.has_activity and period.contains(counts.day)
        ]
        active.sort(key=lambda counts: (-counts.clicks, counts.day))

        return [
            TimeSeriesPoint(
                date=counts.day.isoformat(),
                impressions=counts.impressions,
                clicks=counts.clicks,
            )
            for counts in active[:limit]
        ]

    async def leaderboard(
        self,
        user_id: int,
        period: AnalysisPeriod,
        metric: str = "ctr",
        order: str = "desc",
        limit: Optional[int] = None,
    ) -> list[LeaderboardEntry]:
        """Rank the user's URLs with activity in the period."""
        if limit is None:
            limit = settings.LEADERBOARD_DEFAULT_LIMIT
        validate_limit(limit)

        entries = await self._read("leaderboard", self.source.url_counts(user_id, period))
        return rank(entries, metric=metric, order=order, limit=limit)
