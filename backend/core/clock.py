"""
Clock — the single source of "today" for scheduling code.

Every date decision (lead-time window, Just Because candidates, which
occasions are due) is made against calendar days in one configured time
zone, not whatever zone the server happens to run in.
"""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo


class Clock:
    """Provides the current date and time in a fixed time zone."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def now_naive(self) -> datetime:
        """Wall-clock time without tzinfo, for DateTime columns."""
        return self.now().replace(tzinfo=None)


class SystemClock(Clock):
    """Real wall clock."""


class FixedClock(Clock):
    """Clock frozen at a given date (midday), used by tests and backfills."""

    def __init__(self, today: date, tz_name: str = "UTC"):
        super().__init__(tz_name)
        self._now = datetime(today.year, today.month, today.day, 12, 0, tzinfo=self.tz)

    def now(self) -> datetime:
        return self._now


@lru_cache
def get_clock() -> Clock:
    """Process-wide system clock in the configured application time zone."""
    from core.config import get_settings

    return SystemClock(get_settings().app_timezone)
