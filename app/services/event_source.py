"""
Event Source

Read-only access to click and impression events as pre-aggregated counts.

Design Decisions:
- EventSource is the contract the aggregator depends on; SQLEventSource is
  the relational implementation
- Every query is a simple COUNT/SUM ... GROUP BY; bucketing beyond the
  calendar day happens in Python
- Scope is matched exhaustively: UrlScope filters on url_id, UserScope joins
  urls and filters on user_id
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.core.validators import extract_source
from app.db.interface import DatabaseAdapter
from app.db.models import Click, Impression, ShortURL
from app.db.sqlite_adapter import get_database_adapter
from app.services.metrics import (
    AnalysisPeriod,
    DailyCounts,
    MetricSummary,
    Scope,
    SourceBreakdown,
    UrlCounts,
    UrlScope,
    UserScope,
)


class EventSource(ABC):
    """Contract for reading aggregated event counts."""

    @abstractmethod
    async def totals(self, scope: Scope, period: AnalysisPeriod) -> MetricSummary:
        """Impression, unique impression and click totals."""

    @abstractmethod
    async def daily_counts(self, scope: Scope, period: AnalysisPeriod) -> list[DailyCounts]:
        """Counts per UTC calendar day; days without events may be omitted."""

    @abstractmethod
    async def source_counts(self, scope: Scope, period: AnalysisPeriod) -> list[SourceBreakdown]:
        """Counts per traffic source, one entry per distinct source."""

    @abstractmethod
    async def url_counts(self, user_id: int, period: AnalysisPeriod) -> list[UrlCounts]:
        """Counts per non-deleted URL of a user, only URLs with activity."""


def to_date(value: Any) -> date:
    """Normalize a DATE() result (date, datetime or ISO string) to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class SQLEventSource(EventSource):
    """
    EventSource backed by the clicks/impressions tables.

    The session is only read from.
    """

    def __init__(self, session: AsyncSession, adapter: Optional[DatabaseAdapter] = None):
        """
        Args:
            session: Async database session
            adapter: Database adapter providing dialect-specific expressions
        """
        self.session = session
        self.adapter = adapter or get_database_adapter()

    def _scoped(self, statement: Select, url_column: Any, scope: Scope) -> Select:
        if isinstance(scope, UrlScope):
            return statement.where(url_column == scope.url_id)
        if isinstance(scope, UserScope):
            return statement.join(ShortURL, ShortURL.id == url_column).where(
                ShortURL.user_id == scope.user_id
            )
        raise TypeError(f"Unsupported scope: {scope!r}")

    @staticmethod
    def _within(column: Any, period: AnalysisPeriod):
        return and_(column >= period.starts_at, column < period.ends_before)

    @staticmethod
    def _unique_count():
        return func.coalesce(func.sum(case((Impression.is_unique == True, 1), else_=0)), 0)  # noqa: E712

    async def totals(self, scope: Scope, period: AnalysisPeriod) -> MetricSummary:
        impression_statement = self._scoped(
            select(func.count(Impression.id), self._unique_count())
            .select_from(Impression)
            .where(self._within(Impression.timestamp, period)),
            Impression.url_id,
            scope,
        )
        impressions, unique_impressions = (await self.session.execute(impression_statement)).one()

        click_statement = self._scoped(
            select(func.count(Click.id))
            .select_from(Click)
            .where(self._within(Click.clicked_at, period)),
            Click.url_id,
            scope,
        )
        clicks = (await self.session.execute(click_statement)).scalar_one()

        return MetricSummary(
            total_impressions=int(impressions or 0),
            total_clicks=int(clicks or 0),
            unique_impressions=int(unique_impressions or 0),
        )

    async def daily_counts(self, scope: Scope, period: AnalysisPeriod) -> list[DailyCounts]:
        impression_day = self.adapter.day_expression(Impression.timestamp)
        impression_statement = self._scoped(
            select(impression_day.label("day"), func.count(Impression.id), self._unique_count())
            .select_from(Impression)
            .where(self._within(Impression.timestamp, period)),
            Impression.url_id,
            scope,
        ).group_by(impression_day)

        click_day = self.adapter.day_expression(Click.clicked_at)
        click_statement = self._scoped(
            select(click_day.label("day"), func.count(Click.id))
            .select_from(Click)
            .where(self._within(Click.clicked_at, period)),
            Click.url_id,
            scope,
        ).group_by(click_day)

        counts: dict[date, dict[str, int]] = {}

        for day, impressions, unique_impressions in await self.session.execute(impression_statement):
            entry = counts.setdefault(to_date(day), {})
            entry["impressions"] = int(impressions or 0)
            entry["unique_impressions"] = int(unique_impressions or 0)

        for day, clicks in await self.session.execute(click_statement):
            counts.setdefault(to_date(day), {})["clicks"] = int(clicks or 0)

        return [DailyCounts(day=day, **values) for day, values in sorted(counts.items())]

    async def source_counts(self, scope: Scope, period: AnalysisPeriod) -> list[SourceBreakdown]:
        impression_statement = self._scoped(
            select(Impression.source, func.count(Impression.id))
            .select_from(Impression)
            .where(self._within(Impression.timestamp, period)),
            Impression.url_id,
            scope,
        ).group_by(Impression.source)

        # Clicks only store the referrer; map it with the same rule used for impressions
        click_statement = self._scoped(
            select(Click.referrer, func.count(Click.id))
            .select_from(Click)
            .where(self._within(Click.clicked_at, period)),
            Click.url_id,
            scope,
        ).group_by(Click.referrer)

        impressions: dict[str, int] = {}
        clicks: dict[str, int] = {}

        for source, count in await self.session.execute(impression_statement):
            key = source or ""
            impressions[key] = impressions.get(key, 0) + int(count)

        for referrer, count in await self.session.execute(click_statement):
            key = extract_source(referrer)
            clicks[key] = clicks.get(key, 0) + int(count)

        return [
            SourceBreakdown(
                source=source,
                impressions=impressions.get(source, 0),
                clicks=clicks.get(source, 0),
            )
            for source in set(impressions) | set(clicks)
        ]

    async def url_counts(self, user_id: int, period: AnalysisPeriod) -> list[UrlCounts]:
        owned = and_(ShortURL.user_id == user_id, ShortURL.deleted_at.is_(None))

        impression_statement = (
            select(Impression.url_id, func.count(Impression.id))
            .select_from(Impression)
            .join(ShortURL, ShortURL.id == Impression.url_id)
            .where(owned, self._within(Impression.timestamp, period))
            .group_by(Impression.url_id)
        )
        click_statement = (
            select(Click.url_id, func.count(Click.id))
            .select_from(Click)
            .join(ShortURL, ShortURL.id == Click.url_id)
            .where(owned, self._within(Click.clicked_at, period))
            .group_by(Click.url_id)
        )

        impressions = {url_id: int(count) for url_id, count in await self.session.execute(impression_statement)}
        clicks = {url_id: int(count) for url_id, count in await self.session.execute(click_statement)}

        active_ids = set(impressions) | set(clicks)
        if not active_ids:
            return []

        url_statement = select(ShortURL.id, ShortURL.short_code, ShortURL.title).where(
            ShortURL.id.in_(active_ids)
        )

        return [
            UrlCounts(
                url_id=url_id,
                short_code=short_code,
                title=title,
                impressions=impressions.get(url_id, 0),
                clicks=clicks.get(url_id, 0),
            )
            for url_id, short_code, title in await self.session.execute(url_statement)
        ]
