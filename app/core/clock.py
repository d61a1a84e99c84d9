"""
Clock Providers

The analytics engine never reads the wall clock directly. Components take a
Clock so tests can pin "now" to a fixed instant.
"""

from datetime import date, datetime, timezone


class Clock:
    """Provides the current UTC instant."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock frozen at a given instant (naive values are taken as UTC)."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self.instant


system_clock = Clock()
