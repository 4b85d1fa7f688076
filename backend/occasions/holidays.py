"""
Holiday Calendar — calendar dates for the card holidays we fulfil.

  - Fixed-date holidays (New Year's, Valentine's Day, St. Patrick's Day,
    Independence Day, Halloween, Christmas): direct (month, day) lookup
  - Nth-weekday holidays (Mother's Day, Father's Day, Thanksgiving)
  - Easter via the Anonymous Gregorian algorithm (Computus)

Unknown holiday names resolve to January 1 of the requested year and log
a warning instead of raising; callers treat the result as a best guess.
"""

from datetime import date, timedelta
from typing import NamedTuple

import structlog

from core.clock import Clock, get_clock

logger = structlog.get_logger()

MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY, SUNDAY = range(7)

FIXED_HOLIDAYS: dict[str, tuple[int, int]] = {
    "New Year's": (1, 1),
    "Valentine's Day": (2, 14),
    "St. Patrick's Day": (3, 17),
    "Independence Day": (7, 4),
    "Halloween": (10, 31),
    "Christmas": (12, 25),
}

# (month, weekday, occurrence)
NTH_WEEKDAY_HOLIDAYS: dict[str, tuple[int, int, int]] = {
    "Mother's Day": (5, SUNDAY, 2),
    "Father's Day": (6, SUNDAY, 3),
    "Thanksgiving": (11, THURSDAY, 4),
}

VARIABLE_HOLIDAYS = ("Easter", "Mother's Day", "Father's Day", "Thanksgiving")

HOLIDAY_NAMES = (
    "New Year's",
    "Valentine's Day",
    "St. Patrick's Day",
    "Easter",
    "Mother's Day",
    "Father's Day",
    "Independence Day",
    "Halloween",
    "Thanksgiving",
    "Christmas",
)


class UpcomingHoliday(NamedTuple):
    name: str
    date: date
    days_until: int


def nth_weekday_of_month(year: int, month: int, weekday: int, n: int) -> date:
    """Find the nth occurrence of a weekday in a given month.

    weekday: 0=Monday ... 6=Sunday
    n: 1=first, 2=second, ...
    """
    first = date(year, month, 1)
    # Days until first occurrence of weekday
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def compute_easter(year: int) -> date:
    """Compute Easter Sunday using the Anonymous Gregorian algorithm."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7  # noqa: E741
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def is_holiday(name: str) -> bool:
    return name in FIXED_HOLIDAYS or name in NTH_WEEKDAY_HOLIDAYS or name == "Easter"


def is_variable_holiday(name: str) -> bool:
    """True when the holiday's date moves from year to year."""
    return name in VARIABLE_HOLIDAYS


def holiday_date(name: str, year: int) -> date:
    """Return the calendar date of ``name`` in ``year``."""
    if name in FIXED_HOLIDAYS:
        month, day = FIXED_HOLIDAYS[name]
        return date(year, month, day)
    if name in NTH_WEEKDAY_HOLIDAYS:
        month, weekday, occurrence = NTH_WEEKDAY_HOLIDAYS[name]
        return nth_weekday_of_month(year, month, weekday, occurrence)
    if name == "Easter":
        return compute_easter(year)

    logger.warning("holidays.unknown_holiday", holiday=name, year=year)
    return date(year, 1, 1)


def next_occurrence(name: str, clock: Clock | None = None) -> date:
    """
    Next instance of a holiday: this year's date while it is still ahead,
    otherwise next year's. On the holiday itself the next year's date is used.
    """
    today = (clock or get_clock()).today()
    this_year = holiday_date(name, today.year)
    if this_year <= today:
        return holiday_date(name, today.year + 1)
    return this_year


def upcoming_holidays(count: int = 3, clock: Clock | None = None) -> list[UpcomingHoliday]:
    """The next ``count`` holiday instances after today, soonest first."""
    today = (clock or get_clock()).today()
    candidates = []
    for year in (today.year, today.year + 1):
        for name in HOLIDAY_NAMES:
            when = holiday_date(name, year)
            days = (when - today).days
            if days > 0:
                candidates.append(UpcomingHoliday(name=name, date=when, days_until=days))
    candidates.sort(key=lambda h: h.days_until)
    return candidates[:count]
