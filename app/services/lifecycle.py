"""
Lifecycle Status Evaluator

Derives the display status of a URL (active, inactive, expired,
expiring-soon) and the days left before it expires, relative to the
viewer's "now".

Design Decisions:
- Nothing is persisted: status is a pure function of is_active, expiry_date
  and now, recomputed on every response
- Expiry is lazy: an expired URL is reported with is_active=False while the
  stored flag is left for the expiration job to flip
- Never raises: malformed input yields a defined status, because this runs
  on every URL list/detail response
"""

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from app.core.clock import Clock, system_clock
from app.core.setting import settings
from app.core.validators import sanitize_timezone
from app.services.timezone_offsets import TimezoneOffsetCache

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_EXPIRED = "expired"
STATUS_EXPIRING_SOON = "expiring-soon"

DEFAULT_TIMEZONE = "UTC"

# Coarse guess from the region subtag of an Accept-Language tag (e.g. en-GB)
COUNTRY_TIMEZONES = {
    "US": "America/New_York",
    "GB": "Europe/London",
    "ID": "Asia/Jakarta",
    "SG": "Asia/Singapore",
    "AU": "Australia/Sydney",
    "JP": "Asia/Tokyo",
    "CN": "Asia/Shanghai",
    "IN": "Asia/Kolkata",
}

LOCALE_PATTERN = re.compile(r'^([a-z]{2})-([A-Z]{2})')

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class LifecycleStatus:
    status: str
    days_until_expiry: Optional[int]
    is_active: bool


@dataclass(frozen=True)
class ViewerContext:
    """Everything known about who is looking at a URL, in priority order."""
    user_timezone: Optional[str] = None
    request_timezone: Optional[str] = None
    timezone_header: Optional[str] = None
    accept_language: Optional[str] = None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def parse_expiry(value: Any) -> Optional[datetime]:
    """
    Normalize an expiry date to a naive UTC datetime.

    Accepts datetimes, dates (midnight UTC) and ISO strings.

    Raises:
        ValueError: If a string cannot be parsed
        TypeError: For unsupported types
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        return _naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    raise TypeError(f"Unsupported expiry_date type: {type(value).__name__}")


def evaluate_status(
    is_active: Any,
    expiry_date: Any,
    now: datetime,
    expiring_soon_days: Optional[int] = None,
) -> LifecycleStatus:
    """
    Compute the lifecycle status of a URL.

    Args:
        is_active: Stored activation flag
        expiry_date: Stored expiry (datetime, date, ISO string or None)
        now: Current wall-clock time of the viewer (tzinfo, if any, is ignored)
        expiring_soon_days: Threshold for expiring-soon (default EXPIRING_SOON_DAYS)

    Returns:
        LifecycleStatus with the reported is_active flag
    """
    if expiring_soon_days is None:
        expiring_soon_days = settings.EXPIRING_SOON_DAYS

    # A deactivated URL stays inactive even when unexpired
    if not is_active:
        return LifecycleStatus(STATUS_INACTIVE, None, False)

    try:
        expiry = parse_expiry(expiry_date)
    except (ValueError, TypeError) as e:
        logger.warning(f"Ignoring malformed expiry_date {expiry_date!r}: {e}")
        expiry = None

    if expiry is None:
        return LifecycleStatus(STATUS_ACTIVE, None, True)

    remaining = expiry - now.replace(tzinfo=None)
    days_until_expiry = max(0, math.ceil(remaining.total_seconds() / SECONDS_PER_DAY))

    if remaining <= timedelta(0):
        return LifecycleStatus(STATUS_EXPIRED, 0, False)

    if days_until_expiry <= expiring_soon_days:
        return LifecycleStatus(STATUS_EXPIRING_SOON, days_until_expiry, True)

    return LifecycleStatus(STATUS_ACTIVE, days_until_expiry, True)


def resolve_timezone(viewer: Optional[ViewerContext]) -> str:
    """
    Pick the viewer's timezone.

    Priority: stored user preference, request-scoped override, X-Timezone
    header, Accept-Language country guess, UTC.
    """
    if viewer is None:
        return DEFAULT_TIMEZONE

    for candidate in (viewer.user_timezone, viewer.request_timezone, viewer.timezone_header):
        timezone_name = sanitize_timezone(candidate)
        if timezone_name:
            return timezone_name

    if viewer.accept_language:
        match = LOCALE_PATTERN.match(viewer.accept_language.strip())
        if match and match.group(2) in COUNTRY_TIMEZONES:
            return COUNTRY_TIMEZONES[match.group(2)]

    return DEFAULT_TIMEZONE


def is_url_record(value: Any) -> bool:
    return isinstance(value, Mapping) and "id" in value and "expiry_date" in value


class LifecycleStatusService:
    """
    Adds status and days_until_expiry to URL-shaped payloads.

    The viewer's "now" is the UTC instant shifted by the cached offset of
    their timezone.
    """

    def __init__(
        self,
        offsets: TimezoneOffsetCache,
        clock: Clock = system_clock,
        expiring_soon_days: Optional[int] = None,
    ):
        self.offsets = offsets
        self.clock = clock
        self.expiring_soon_days = expiring_soon_days

    def current_time(self, timezone_name: str) -> datetime:
        """Wall-clock time in ``timezone_name`` as a naive datetime."""
        offset = self.offsets.offset_minutes(timezone_name)
        return _naive_utc(self.clock.now()) + timedelta(minutes=offset)

    def status_of(self, is_active: Any, expiry_date: Any, viewer: Optional[ViewerContext] = None) -> LifecycleStatus:
        now = self.current_time(resolve_timezone(viewer))
        return evaluate_status(is_active, expiry_date, now, self.expiring_soon_days)

    def decorate_with_lifecycle_status(self, payload: Any, viewer: Optional[ViewerContext] = None) -> Any:
        """
        Return a copy of ``payload`` with lifecycle fields on every URL record.

        ``payload`` may be a URL mapping, a list of them, or an envelope with
        a ``data`` key holding either. Anything else is returned unchanged.
        """
        timezone_name = resolve_timezone(viewer)
        now = self.current_time(timezone_name)
        logger.debug(f"URL expiration processed with timezone: {timezone_name}")
        return self._decorate(payload, now)

    def _decorate(self, payload: Any, now: datetime) -> Any:
        if isinstance(payload, list):
            return [self._decorate_record(item, now) for item in payload]

        if is_url_record(payload):
            return self._decorate_record(payload, now)

        if isinstance(payload, Mapping) and "data" in payload:
            return {**payload, "data": self._decorate(payload["data"], now)}

        return payload

    def _decorate_record(self, record: Any, now: datetime) -> Any:
        if not is_url_record(record):
            return record

        lifecycle = evaluate_status(
            record.get("is_active", True),
            record.get("expiry_date"),
            now,
            self.expiring_soon_days,
        )

        decorated = dict(record)
        decorated["status"] = lifecycle.status
        decorated["days_until_expiry"] = lifecycle.days_until_expiry
        decorated["is_active"] = lifecycle.is_active
        return decorated
