"""Tests for analysis/comparison window resolution and bucketing."""

from datetime import date, datetime, timezone

import pytest

from app.core.clock import FixedClock
from app.services import time_window

from app.core.exceptions import InvalidRangeError, MissingComparisonBoundsError, ValidationError
from app.core.validators import extract_source, parse_iso_date, sanitize_timezone
from app.services.metrics import AnalysisPeriod
from app.services.time_window import (
    STANDARD_COMPARISONS,
    bucket_label,
    iter_buckets,
    previous_period,
    resolve_analysis_period,
    resolve_comparison_period,
    resolve_window,
)

TODAY = date(2025, 4, 22)


class TestAnalysisPeriod:

    def test_defaults_end_today_and_looks_back(self):
        period = resolve_analysis_period(today=TODAY)

        assert period.end_date == TODAY
        assert period.start_date == date(2025, 3, 23)

    def test_default_start_is_relative_to_explicit_end(self):
        period = resolve_analysis_period(end_date="2025-02-10", today=TODAY, default_days=7)

        assert period.start_date == date(2025, 2, 3)

    def test_explicit_bounds(self):
        period = resolve_analysis_period("2025-04-10", "2025-04-16", today=TODAY)

        assert period == AnalysisPeriod(date(2025, 4, 10), date(2025, 4, 16))
        assert period.days == 7

    def test_single_day_period(self):
        period = resolve_analysis_period("2025-04-10", "2025-04-10", today=TODAY)

        assert period.days == 1

    def test_inverted_range_rejected(self):
        with pytest.raises(InvalidRangeError) as exc_info:
            resolve_analysis_period("2025-04-16", "2025-04-10", today=TODAY)

        assert exc_info.value.reason == "invalid_range"

    @pytest.mark.parametrize("value", ["2025-13-01", "yesterday", "04/10/2025", ""])
    def test_malformed_date_rejected(self, value):
        with pytest.raises(InvalidRangeError):
            parse_iso_date(value, "start_date")

    def test_timestamp_is_truncated_in_utc(self):
        assert parse_iso_date("2025-04-10T23:30:00-02:00") == date(2025, 4, 11)
        assert parse_iso_date("2025-04-10T12:00:00Z") == date(2025, 4, 10)

    def test_period_dict(self):
        period = AnalysisPeriod(date(2025, 4, 10), date(2025, 4, 16))

        assert period.to_dict() == {"start_date": "2025-04-10", "end_date": "2025-04-16"}
        assert period.to_dict(include_days=True)["days"] == 7


class TestCalendarLimits:
    """Bounds near date.min/date.max are client errors, not crashes."""

    @pytest.mark.parametrize("kwargs", [
        {"end_date": "0001-01-05"},
        {"start_date": "0001-01-01", "end_date": "0001-01-03", "comparison": "7"},
        {"end_date": "9999-12-31"},
        {"start_date": "9999-12-25", "end_date": "9999-12-31"},
        {
            "start_date": "2025-04-10",
            "end_date": "2025-04-16",
            "comparison": "custom",
            "custom_comparison_start": "9999-12-30",
            "custom_comparison_end": "9999-12-31",
        },
    ])
    def test_rejected_as_invalid_range(self, kwargs):
        with pytest.raises(InvalidRangeError) as exc_info:
            resolve_window(today=TODAY, **kwargs)

        assert exc_info.value.reason == "invalid_range"

    def test_earliest_dates_still_usable(self):
        window = resolve_window("0001-01-01", "0001-01-10", today=TODAY)

        assert window.analysis.starts_at == datetime(1, 1, 1, tzinfo=timezone.utc)

    def test_latest_usable_end_date(self):
        period = resolve_analysis_period("9999-12-20", "9999-12-30", today=TODAY)

        assert period.ends_before == datetime(9999, 12, 31, tzinfo=timezone.utc)


class TestPeriodLength:

    def test_longest_allowed_period(self):
        period = resolve_analysis_period("2025-04-10", "2025-04-16", today=TODAY, max_days=7)

        assert period.days == 7

    def test_longer_period_rejected(self):
        with pytest.raises(InvalidRangeError):
            resolve_analysis_period("2025-04-09", "2025-04-16", today=TODAY, max_days=7)

    def test_whole_calendar_rejected_by_default(self):
        with pytest.raises(InvalidRangeError):
            resolve_analysis_period("0001-01-01", "9999-12-30", today=TODAY)


class TestDefaultToday:

    def test_end_date_defaults_to_utc_today(self, monkeypatch):
        # 23:30 UTC is already the next calendar day east of UTC
        clock = FixedClock(datetime(2025, 4, 22, 23, 30, tzinfo=timezone.utc))
        monkeypatch.setattr(time_window, "system_clock", clock)

        period = resolve_analysis_period()

        assert period.end_date == date(2025, 4, 22)


class TestStandardComparison:
    """Standard comparisons cover the equally long window right before the analysis period."""

    def test_previous_week(self):
        analysis = AnalysisPeriod(date(2025, 4, 10), date(2025, 4, 16))

        previous = resolve_comparison_period(analysis, "7")

        assert previous == AnalysisPeriod(date(2025, 4, 3), date(2025, 4, 9))

    @pytest.mark.parametrize("comparison", STANDARD_COMPARISONS)
    @pytest.mark.parametrize("start,end", [
        ("2025-04-10", "2025-04-16"),
        ("2025-01-01", "2025-01-01"),
        ("2024-02-15", "2024-03-15"),
        ("2024-12-01", "2025-02-28"),
    ])
    def test_ends_before_and_matches_length(self, comparison, start, end):
        window = resolve_window(start, end, comparison, today=TODAY)

        assert window.comparison.end_date < window.analysis.start_date
        assert (window.analysis.start_date - window.comparison.end_date).days == 1
        assert window.comparison.days == window.analysis.days

    def test_no_comparison_requested(self):
        window = resolve_window("2025-04-10", "2025-04-16", today=TODAY)

        assert window.comparison is None

    def test_unknown_comparison_rejected(self):
        with pytest.raises(InvalidRangeError) as exc_info:
            resolve_window("2025-04-10", "2025-04-16", "15", today=TODAY)

        assert exc_info.value.reason == "invalid_comparison"

    def test_previous_period_helper(self):
        analysis = AnalysisPeriod(date(2025, 3, 1), date(2025, 3, 31))

        assert previous_period(analysis) == AnalysisPeriod(date(2025, 1, 29), date(2025, 2, 28))


class TestCustomComparison:

    def test_both_bounds_required(self):
        with pytest.raises(MissingComparisonBoundsError) as exc_info:
            resolve_window("2025-04-10", "2025-04-16", "custom", custom_comparison_start="2025-03-01", today=TODAY)

        assert exc_info.value.missing == ["custom_comparison_end"]
        assert exc_info.value.to_detail()["reason"] == "missing_comparison_bounds"

    def test_neither_bound_given(self):
        with pytest.raises(MissingComparisonBoundsError) as exc_info:
            resolve_window("2025-04-10", "2025-04-16", "custom", today=TODAY)

        assert exc_info.value.missing == ["custom_comparison_start", "custom_comparison_end"]

    def test_custom_window_used_as_given(self):
        window = resolve_window(
            "2025-04-10", "2025-04-16", "custom",
            custom_comparison_start="2025-03-01",
            custom_comparison_end="2025-03-31",
            today=TODAY,
        )

        assert window.comparison == AnalysisPeriod(date(2025, 3, 1), date(2025, 3, 31))

    def test_inverted_custom_window_rejected(self):
        with pytest.raises(InvalidRangeError):
            resolve_window(
                "2025-04-10", "2025-04-16", "custom",
                custom_comparison_start="2025-03-31",
                custom_comparison_end="2025-03-01",
                today=TODAY,
            )

    def test_overlapping_custom_window_rejected(self):
        with pytest.raises(InvalidRangeError) as exc_info:
            resolve_window(
                "2025-04-10", "2025-04-16", "custom",
                custom_comparison_start="2025-04-01",
                custom_comparison_end="2025-04-10",
                today=TODAY,
            )

        assert exc_info.value.reason == "comparison_overlaps"


class TestBuckets:
    """Every bucket touching the period is produced, with no gaps."""

    def test_daily_buckets(self):
        period = AnalysisPeriod(date(2025, 4, 10), date(2025, 4, 16))

        assert len(list(iter_buckets(period, "day"))) == period.days

    def test_weekly_buckets_start_on_monday(self):
        # 2025-04-10 is a Thursday, 2025-04-21 a Monday
        period = AnalysisPeriod(date(2025, 4, 10), date(2025, 4, 21))

        assert list(iter_buckets(period, "week")) == [
            date(2025, 4, 7), date(2025, 4, 14), date(2025, 4, 21),
        ]

    def test_monthly_buckets_cross_year(self):
        period = AnalysisPeriod(date(2024, 11, 30), date(2025, 2, 1))

        starts = list(iter_buckets(period, "month"))

        assert [bucket_label(start, "month") for start in starts] == [
            "2024-11", "2024-12", "2025-01", "2025-02",
        ]

    def test_month_bucket_from_month_end(self):
        period = AnalysisPeriod(date(2025, 1, 31), date(2025, 3, 1))

        assert list(iter_buckets(period, "month")) == [
            date(2025, 1, 1), date(2025, 2, 1), date(2025, 3, 1),
        ]

    def test_unknown_granularity(self):
        period = AnalysisPeriod(date(2025, 4, 10), date(2025, 4, 16))

        with pytest.raises(ValidationError) as exc_info:
            list(iter_buckets(period, "hour"))

        assert exc_info.value.reason == "invalid_granularity"


class TestInputSanitizers:

    @pytest.mark.parametrize("referrer,expected", [
        ("https://www.google.com/search?q=x", "www.google.com"),
        ("http://t.co/abc", "t.co"),
        ("newsletter", "newsletter"),
        (None, ""),
        ("", ""),
    ])
    def test_extract_source(self, referrer, expected):
        assert extract_source(referrer) == expected

    @pytest.mark.parametrize("value,expected", [
        ("Asia/Tokyo", "Asia/Tokyo"),
        ("  Europe/London ", "Europe/London"),
        ("Etc/GMT+5", "Etc/GMT+5"),
        ("Bad Zone!", None),
        ("x" * 65, None),
        (None, None),
    ])
    def test_sanitize_timezone(self, value, expected):
        assert sanitize_timezone(value) == expected
