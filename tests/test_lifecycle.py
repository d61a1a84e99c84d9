"""
Tests for lifecycle status evaluation, timezone resolution and the
timezone offset cache. "Now" is 2025-04-22T10:00:00Z throughout.
"""

from datetime import date, datetime, timezone

import pytest

from app.core.cache import TTLCache
from app.core.cache_registry import timezone_offset_key
from app.core.clock import FixedClock
from app.services.lifecycle import (
    LifecycleStatusService,
    ViewerContext,
    evaluate_status,
    parse_expiry,
    resolve_timezone,
)
from app.services.timezone_offsets import TimezoneOffsetCache
from tests.conftest import NOW

NAIVE_NOW = datetime(2025, 4, 22, 10, 0)


@pytest.fixture
def offsets():
    return TimezoneOffsetCache(TTLCache(max_size=10, default_ttl_ms=60_000), clock=FixedClock(NOW))


@pytest.fixture
def service(offsets):
    return LifecycleStatusService(offsets, clock=FixedClock(NOW))


class TestEvaluateStatus:

    @pytest.mark.parametrize("is_active,expiry_date,status,days,reported_active", [
        (False, "2025-05-01", "inactive", None, False),
        (True, None, "active", None, True),
        (True, "2025-04-20", "expired", 0, False),
        (True, "2025-04-25", "expiring-soon", 3, True),
        (True, "2025-04-29", "expiring-soon", 7, True),
        (True, "2025-05-15", "active", 23, True),
    ])
    def test_state_machine(self, is_active, expiry_date, status, days, reported_active):
        result = evaluate_status(is_active, expiry_date, NAIVE_NOW)

        assert result.status == status
        assert result.days_until_expiry == days
        assert result.is_active is reported_active

    def test_expiry_exactly_now_is_expired(self):
        result = evaluate_status(True, datetime(2025, 4, 22, 10, 0, tzinfo=timezone.utc), NAIVE_NOW)

        assert result.status == "expired"

    def test_inactive_wins_over_expired(self):
        assert evaluate_status(False, "2025-01-01", NAIVE_NOW).status == "inactive"

    def test_one_minute_left_is_one_day(self):
        result = evaluate_status(True, datetime(2025, 4, 22, 10, 1), NAIVE_NOW)

        assert result.status == "expiring-soon"
        assert result.days_until_expiry == 1

    @pytest.mark.parametrize("expiry_date", ["not-a-date", 12345, "2025-02-30"])
    def test_malformed_expiry_never_raises(self, expiry_date):
        result = evaluate_status(True, expiry_date, NAIVE_NOW)

        assert result.status == "active"
        assert result.days_until_expiry is None

    def test_custom_threshold(self):
        result = evaluate_status(True, "2025-04-25", NAIVE_NOW, expiring_soon_days=2)

        assert result.status == "active"

    def test_parse_expiry_normalizes_to_naive_utc(self):
        assert parse_expiry("2025-04-25T02:00:00+02:00") == datetime(2025, 4, 25, 0, 0)
        assert parse_expiry(date(2025, 4, 25)) == datetime(2025, 4, 25, 0, 0)
        assert parse_expiry("") is None


class TestResolveTimezone:
    """Priority: stored preference, request override, header, locale, UTC."""

    def test_stored_preference_first(self):
        viewer = ViewerContext(
            user_timezone="Asia/Tokyo",
            request_timezone="Europe/Paris",
            timezone_header="America/Chicago",
            accept_language="en-GB",
        )

        assert resolve_timezone(viewer) == "Asia/Tokyo"

    def test_request_override_second(self):
        viewer = ViewerContext(request_timezone="Europe/Paris", timezone_header="America/Chicago")

        assert resolve_timezone(viewer) == "Europe/Paris"

    def test_header_third(self):
        assert resolve_timezone(ViewerContext(timezone_header="America/Chicago")) == "America/Chicago"

    def test_malformed_candidates_skipped(self):
        viewer = ViewerContext(user_timezone="Bad Zone!", timezone_header="Asia/Jakarta")

        assert resolve_timezone(viewer) == "Asia/Jakarta"

    @pytest.mark.parametrize("accept_language,expected", [
        ("en-GB,en;q=0.9", "Europe/London"),
        ("en-US", "America/New_York"),
        ("id-ID", "Asia/Jakarta"),
        ("fr-FR", "UTC"),
        ("en", "UTC"),
    ])
    def test_locale_guess(self, accept_language, expected):
        assert resolve_timezone(ViewerContext(accept_language=accept_language)) == expected

    def test_defaults_to_utc(self):
        assert resolve_timezone(ViewerContext()) == "UTC"
        assert resolve_timezone(None) == "UTC"


class TestTimezoneOffsetCache:

    @pytest.mark.parametrize("name,minutes", [
        ("UTC", 0),
        ("Asia/Tokyo", 540),
        ("Asia/Kolkata", 330),
        ("America/New_York", -240),
    ])
    def test_offsets(self, offsets, name, minutes):
        assert offsets.offset_minutes(name) == minutes

    def test_offset_is_cached(self, offsets):
        offsets.offset_minutes("Asia/Tokyo")

        assert offsets.cache.get(timezone_offset_key("Asia/Tokyo")) == 540
        assert offsets.cache.get_stats()["sets"] == 1

        offsets.offset_minutes("Asia/Tokyo")
        assert offsets.cache.get_stats()["sets"] == 1

    @pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "../etc/passwd", ""])
    def test_unknown_timezone_degrades_to_utc(self, offsets, name):
        assert offsets.offset_minutes(name) == 0
        assert offsets.cache.has(timezone_offset_key(name))

    def test_fallback_expires_with_ttl(self):
        now = [0.0]
        cache = TTLCache(max_size=10, default_ttl_ms=1000, timer=lambda: now[0])
        offsets = TimezoneOffsetCache(cache, clock=FixedClock(NOW), ttl_ms=1000)

        offsets.offset_minutes("Nowhere/Special")
        now[0] = 1.0

        assert not cache.has(timezone_offset_key("Nowhere/Special"))


class TestLifecycleStatusService:

    def test_viewer_timezone_shifts_now(self, service):
        # 2025-04-23T00:00Z is 14 hours away in UTC, already past in Kiritimati (UTC+14)
        record = {"id": 1, "is_active": True, "expiry_date": "2025-04-23T00:00:00"}

        utc_view = service.decorate_with_lifecycle_status(record, ViewerContext())
        kiritimati_view = service.decorate_with_lifecycle_status(
            record, ViewerContext(timezone_header="Pacific/Kiritimati")
        )

        assert utc_view["status"] == "expiring-soon"
        assert utc_view["days_until_expiry"] == 1
        assert kiritimati_view["status"] == "expired"
        assert kiritimati_view["is_active"] is False

    def test_unknown_viewer_timezone_uses_utc(self, service):
        record = {"id": 1, "is_active": True, "expiry_date": "2025-04-25"}

        result = service.decorate_with_lifecycle_status(record, ViewerContext(timezone_header="Nowhere/Land"))

        assert result["days_until_expiry"] == 3

    def test_list_decorated_without_mutation(self, service):
        records = [
            {"id": 1, "is_active": True, "expiry_date": "2025-04-20"},
            {"id": 2, "is_active": True, "expiry_date": None},
        ]

        result = service.decorate_with_lifecycle_status(records)

        assert [item["status"] for item in result] == ["expired", "active"]
        assert "status" not in records[0]
        assert records[0]["is_active"] is True

    def test_envelope_decorated(self, service):
        payload = {"data": [{"id": 1, "is_active": False, "expiry_date": None}], "total": 1}

        result = service.decorate_with_lifecycle_status(payload)

        assert result["total"] == 1
        assert result["data"][0]["status"] == "inactive"
        assert "status" not in payload["data"][0]

    def test_non_url_payload_untouched(self, service):
        payload = {"message": "ok"}

        assert service.decorate_with_lifecycle_status(payload) == {"message": "ok"}
        assert service.decorate_with_lifecycle_status([1, "x"]) == [1, "x"]

    def test_status_of(self, service):
        assert service.status_of(True, "2025-05-15").status == "active"

    def test_current_time(self, service):
        assert service.current_time("Asia/Tokyo") == datetime(2025, 4, 22, 19, 0)
