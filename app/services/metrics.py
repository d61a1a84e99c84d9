"""
Analytics Value Types

Plain value objects passed between the analytics services:
- Scope: which events an aggregate covers (one URL, or all URLs of a user)
- AnalysisPeriod: an inclusive range of UTC calendar dates
- MetricSummary / MetricComparison: period totals and their deltas
- TimeSeriesPoint, SourceBreakdown, UrlCounts, LeaderboardEntry: grouped results

CTR is always clicks / impressions as a ratio, 0 when there are no
impressions. It is not capped at 1: several clicks may follow one impression.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from app.core.exceptions import InvalidRangeError


@dataclass(frozen=True)
class UrlScope:
    """Events of a single URL."""
    url_id: int


@dataclass(frozen=True)
class UserScope:
    """Events of every URL owned by a user."""
    user_id: int


Scope = Union[UrlScope, UserScope]


def ratio(numerator: float, denominator: float) -> float:
    """Divide, returning 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return numerator / denominator


@dataclass(frozen=True)
class AnalysisPeriod:
    """Inclusive range of calendar dates, start_date <= end_date."""
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise InvalidRangeError(
                f"start_date {self.start_date.isoformat()} is after end_date {self.end_date.isoformat()}"
            )

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end_date - self.start_date).days + 1

    @property
    def starts_at(self) -> datetime:
        """First instant of the period (UTC)."""
        return datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)

    @property
    def ends_before(self) -> datetime:
        """First instant after the period (UTC), used as an exclusive bound."""
        return datetime.combine(self.end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: "AnalysisPeriod") -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date

    def to_dict(self, include_days: bool = False) -> dict:
        data = {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }
        if include_days:
            data["days"] = self.days
        return data


@dataclass(frozen=True)
class MetricSummary:
    """Totals for one period and one scope."""
    total_impressions: int = 0
    total_clicks: int = 0
    unique_impressions: int = 0

    @property
    def ctr(self) -> float:
        return ratio(self.total_clicks, self.total_impressions)

    @property
    def unique_ctr(self) -> float:
        return ratio(self.total_clicks, self.unique_impressions)

    def to_dict(self) -> dict:
        return {
            "total_impressions": self.total_impressions,
            "total_clicks": self.total_clicks,
            "ctr": self.ctr,
            "unique_impressions": self.unique_impressions,
            "unique_ctr": self.unique_ctr,
        }


@dataclass(frozen=True)
class MetricComparison:
    """One metric in the current period against the previous one."""
    current: float
    previous: float

    @property
    def change(self) -> float:
        return self.current - self.previous

    @property
    def change_percentage(self) -> float:
        # No baseline: a change from 0 is not expressed as a percentage
        if self.previous == 0:
            return 0.0
        return self.change / self.previous * 100

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "previous": self.previous,
            "change": self.change,
            "change_percentage": self.change_percentage,
        }


@dataclass(frozen=True)
class SummaryComparison:
    impressions: MetricComparison
    clicks: MetricComparison
    ctr: MetricComparison

    def to_dict(self) -> dict:
        return {
            "impressions": self.impressions.to_dict(),
            "clicks": self.clicks.to_dict(),
            "ctr": self.ctr.to_dict(),
        }


@dataclass(frozen=True)
class DailyCounts:
    """Raw event counts of one UTC calendar day."""
    day: date
    impressions: int = 0
    unique_impressions: int = 0
    clicks: int = 0

    @property
    def has_activity(self) -> bool:
        return self.impressions > 0 or self.clicks > 0


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Counts of one bucket; ``date`` is the bucket label (YYYY-MM-DD or YYYY-MM)."""
    date: str
    impressions: int = 0
    clicks: int = 0

    @property
    def ctr(self) -> float:
        return ratio(self.clicks, self.impressions)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "ctr": self.ctr,
        }


@dataclass(frozen=True)
class SourceBreakdown:
    """Counts of one traffic source (referrer hostname, '' for direct)."""
    source: str
    impressions: int = 0
    clicks: int = 0

    @property
    def ctr(self) -> float:
        return ratio(self.clicks, self.impressions)

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "ctr": self.ctr,
        }


@dataclass(frozen=True)
class UrlCounts:
    """Per-URL counts in a period, input to the leaderboard."""
    url_id: int
    short_code: str
    title: Optional[str] = None
    impressions: int = 0
    clicks: int = 0

    @property
    def ctr(self) -> float:
        return ratio(self.clicks, self.impressions)


@dataclass(frozen=True)
class LeaderboardEntry:
    url_id: int
    short_code: str
    title: Optional[str]
    impressions: int
    clicks: int
    ctr: float
    rank: int

    def to_dict(self) -> dict:
        return {
            "url_id": self.url_id,
            "short_code": self.short_code,
            "title": self.title,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "ctr": self.ctr,
            "rank": self.rank,
        }
