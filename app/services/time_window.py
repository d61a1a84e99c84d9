"""
Time Window Resolver

Turns raw query parameters into an analysis period and an optional
comparison period, and splits periods into day/week/month buckets.

Rules:
- end_date defaults to today (UTC), start_date to end_date - DEFAULT_ANALYSIS_DAYS
- Standard comparisons ("7", "14", "30", "90") produce a window of the same
  inclusive length as the analysis period, ending the day before it starts
- comparison="custom" takes both bounds from the caller; they must not
  overlap the analysis period
- Periods longer than MAX_ANALYSIS_DAYS, and bounds whose arithmetic would
  leave the supported calendar, are rejected as InvalidRangeError
- All validation happens here, before any aggregation query runs
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional

from app.core.clock import system_clock
from app.core.exceptions import InvalidRangeError, MissingComparisonBoundsError, ValidationError
from app.core.setting import settings
from app.core.validators import parse_iso_date
from app.services.metrics import AnalysisPeriod

logger = logging.getLogger(__name__)

STANDARD_COMPARISONS = ("7", "14", "30", "90")
CUSTOM_COMPARISON = "custom"

GRANULARITIES = ("day", "week", "month")


@dataclass(frozen=True)
class ResolvedWindow:
    """Analysis period plus the period it is compared against (if requested)."""
    analysis: AnalysisPeriod
    comparison: Optional[AnalysisPeriod] = None


def previous_period(analysis: AnalysisPeriod) -> AnalysisPeriod:
    """
    The window of equal length ending the day before ``analysis`` starts.

    Raises:
        InvalidRangeError: If that window would start before date.min
    """
    try:
        end = analysis.start_date - timedelta(days=1)
        start = end - timedelta(days=analysis.days - 1)
    except OverflowError:
        raise InvalidRangeError("comparison period starts before the earliest supported date")
    return AnalysisPeriod(start, end)


def _check_end(end: date, field_name: str) -> None:
    # Periods are queried up to the instant after their last day
    if end >= date.max:
        raise InvalidRangeError(f"{field_name} must be before {date.max.isoformat()}")


def resolve_analysis_period(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
    default_days: Optional[int] = None,
    max_days: Optional[int] = None,
) -> AnalysisPeriod:
    """
    Parse and default the analysis bounds.

    Raises:
        InvalidRangeError: If a bound is malformed or out of the supported
            calendar, start_date > end_date, or the period is longer than
            MAX_ANALYSIS_DAYS
    """
    if default_days is None:
        default_days = settings.DEFAULT_ANALYSIS_DAYS

    if max_days is None:
        max_days = settings.MAX_ANALYSIS_DAYS

    end = parse_iso_date(end_date, "end_date") if end_date else (today or system_clock.today())
    _check_end(end, "end_date")

    if start_date:
        start = parse_iso_date(start_date, "start_date")
    else:
        try:
            start = end - timedelta(days=default_days)
        except OverflowError:
            raise InvalidRangeError("default start_date falls before the earliest supported date")

    if start > end:
        logger.debug(f"Invalid date range: {start_date} to {end_date}")
        raise InvalidRangeError("end_date must be on or after start_date")

    if (end - start).days + 1 > max_days:
        raise InvalidRangeError(f"analysis period must not exceed {max_days} days")

    return AnalysisPeriod(start, end)


def resolve_comparison_period(
    analysis: AnalysisPeriod,
    comparison: Optional[str] = None,
    custom_comparison_start: Optional[str] = None,
    custom_comparison_end: Optional[str] = None,
) -> Optional[AnalysisPeriod]:
    """
    Determine the comparison period for ``analysis``.

    Returns:
        None when no comparison was requested

    Raises:
        MissingComparisonBoundsError: comparison=custom without both bounds
        InvalidRangeError: unknown comparison value, malformed or inverted
            custom bounds, or custom bounds overlapping the analysis period
    """
    if not comparison:
        return None

    if comparison == CUSTOM_COMPARISON:
        missing = [
            name for name, value in (
                ("custom_comparison_start", custom_comparison_start),
                ("custom_comparison_end", custom_comparison_end),
            )
            if not value
        ]
        if missing:
            raise MissingComparisonBoundsError(missing)

        start = parse_iso_date(custom_comparison_start, "custom_comparison_start")
        end = parse_iso_date(custom_comparison_end, "custom_comparison_end")
        _check_end(end, "custom_comparison_end")

        if start > end:
            logger.debug(f"Invalid custom comparison range: {custom_comparison_start} to {custom_comparison_end}")
            raise InvalidRangeError("custom_comparison_end must be on or after custom_comparison_start")

        period = AnalysisPeriod(start, end)
        if period.overlaps(analysis):
            raise InvalidRangeError(
                "custom comparison period must not overlap the analysis period",
                reason="comparison_overlaps",
            )
        return period

    if comparison not in STANDARD_COMPARISONS:
        raise InvalidRangeError(
            f"comparison must be one of: {', '.join(STANDARD_COMPARISONS)}, {CUSTOM_COMPARISON}",
            reason="invalid_comparison",
        )

    return previous_period(analysis)


def resolve_window(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    comparison: Optional[str] = None,
    custom_comparison_start: Optional[str] = None,
    custom_comparison_end: Optional[str] = None,
    today: Optional[date] = None,
    default_days: Optional[int] = None,
) -> ResolvedWindow:
    """Resolve both periods of an analytics request."""
    analysis = resolve_analysis_period(start_date, end_date, today=today, default_days=default_days)
    comparison_period = resolve_comparison_period(
        analysis,
        comparison,
        custom_comparison_start,
        custom_comparison_end,
    )
    return ResolvedWindow(analysis=analysis, comparison=comparison_period)


def validate_granularity(granularity: str) -> str:
    if granularity not in GRANULARITIES:
        raise ValidationError(
            f"group_by must be one of: {', '.join(GRANULARITIES)}",
            reason="invalid_granularity",
        )
    return granularity


def bucket_start(day: date, granularity: str) -> date:
    """First day of the bucket containing ``day`` (ISO weeks start on Monday)."""
    if granularity == "week":
        return day - timedelta(days=day.weekday())
    if granularity == "month":
        return day.replace(day=1)
    return day


def bucket_label(start: date, granularity: str) -> str:
    if granularity == "month":
        return start.strftime("%Y-%m")
    return start.isoformat()


def _next_bucket(start: date, granularity: str) -> date:
    if granularity == "week":
        return start + timedelta(days=7)
    if granularity == "month":
        return (start + timedelta(days=32)).replace(day=1)
    return start + timedelta(days=1)


def iter_buckets(period: AnalysisPeriod, granularity: str) -> Iterator[date]:
    """Yield the start of every bucket touching ``period``, in order."""
    validate_granularity(granularity)

    current = bucket_start(period.start_date, granularity)
    last = bucket_start(period.end_date, granularity)
    while current <= last:
        yield current
        current = _next_bucket(current, granularity)
