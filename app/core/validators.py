"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs
that reach the analytics engine: date query parameters, timezone names and
referrer headers.

Security Considerations:
- Input validation happens before any query is built
- Length limits prevent DoS attacks through oversized headers
"""

import re
from datetime import date, datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from app.core.exceptions import InvalidRangeError

MAX_TIMEZONE_LENGTH = 64
TIMEZONE_PATTERN = re.compile(r'^[A-Za-z0-9_+\-/]+$')


def parse_iso_date(value: str, field_name: str = "date") -> date:
    """
    Parse an ISO calendar date (YYYY-MM-DD).

    A full ISO timestamp is also accepted; it is normalized to UTC and
    truncated to its calendar date.

    Args:
        value: The raw query parameter
        field_name: Parameter name, used in the error message

    Returns:
        The parsed date

    Raises:
        InvalidRangeError: If the value cannot be parsed
    """
    if not value or not isinstance(value, str):
        raise InvalidRangeError(f"Invalid {field_name} format. Use YYYY-MM-DD")

    value = value.strip()

    try:
        return date.fromisoformat(value)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidRangeError(f"Invalid {field_name} format. Use YYYY-MM-DD")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def sanitize_timezone(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a timezone identifier taken from a header or profile.

    Only the character set used by IANA names (and fixed offsets such as
    ``Etc/GMT+5``) is allowed. Whether the zone actually exists is decided
    later by the timezone offset cache.

    Returns:
        Stripped timezone name if well-formed, None otherwise
    """
    if not value or not isinstance(value, str):
        return None

    value = value.strip()

    if len(value) > MAX_TIMEZONE_LENGTH:
        return None

    if not TIMEZONE_PATTERN.match(value):
        return None

    return value


def extract_source(referrer: Optional[str]) -> str:
    """
    Derive the traffic source from a referrer.

    The hostname is used when the referrer is an absolute URL, otherwise
    the literal referrer. No referrer yields an empty string.
    """
    if not referrer:
        return ""

    parsed = urlparse(referrer)
    if parsed.scheme and parsed.hostname:
        return parsed.hostname

    return referrer
