"""
Delivery Window — how much lead time a card needs.

A card has to be printed, addressed, mailed and delivered, so an order is
only worth creating when the occasion is at least LEAD_TIME_DAYS away.
Anything closer is rolled forward to next year's instance.
"""

import math
from datetime import date, datetime, time
from typing import NamedTuple

from core.clock import Clock, get_clock
from occasions.holidays import next_occurrence

LEAD_TIME_DAYS = 15
JUST_BECAUSE_MIN_DAYS = 30


class DeliveryStatus(NamedTuple):
    is_too_soon: bool
    days_until: int
    fulfillment_date: date
    fulfillment_year: int


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def add_years(d: date, years: int) -> date:
    """Same month/day ``years`` later; Feb 29 falls back to Feb 28."""
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        return d.replace(year=d.year + years, day=28)


def in_year(d: date, year: int) -> date:
    """Move ``d`` to ``year`` keeping month/day; Feb 29 falls back to Feb 28."""
    return add_years(d, year - d.year)


def days_until(target: date | datetime, clock: Clock | None = None) -> int:
    """
    Days from today's midnight to ``target``.

    Datetime targets round partial days up, so 14.1 days out counts as 15.
    """
    today = (clock or get_clock()).today()
    if isinstance(target, datetime):
        midnight = datetime.combine(today, time.min, tzinfo=target.tzinfo)
        return math.ceil((target - midnight).total_seconds() / 86400)
    return (target - today).days


def is_within_window(target: date | datetime, clock: Clock | None = None) -> bool:
    """True when ``target`` leaves at least LEAD_TIME_DAYS for fulfillment."""
    return days_until(target, clock) >= LEAD_TIME_DAYS


def next_fulfillable_year(target: date | datetime, clock: Clock | None = None) -> int:
    year = _as_date(target).year
    if is_within_window(target, clock):
        return year
    return year + 1


def next_annual_occurrence(d: date, today: date) -> date:
    """Next instance of a recurring month/day, counting today."""
    this_year = in_year(d, today.year)
    if this_year < today:
        return in_year(d, today.year + 1)
    return this_year


def resolve_fulfillment_year(
    occasion_type: str,
    custom_date: date | datetime | None = None,
    clock: Clock | None = None,
) -> DeliveryStatus:
    """
    Decide when an occasion will actually be fulfilled.

    Custom occasions (Birthday, Anniversary) pass the user-selected date;
    holidays are resolved through the holiday calendar. An occasion fewer
    than LEAD_TIME_DAYS away (but not already past) moves to next year.
    """
    clock = clock or get_clock()
    if custom_date is not None:
        occasion_date = next_annual_occurrence(_as_date(custom_date), clock.today())
    else:
        occasion_date = next_occurrence(occasion_type, clock)

    remaining = days_until(occasion_date, clock)
    is_too_soon = 0 <= remaining < LEAD_TIME_DAYS

    fulfillment_date = add_years(occasion_date, 1) if is_too_soon else occasion_date
    return DeliveryStatus(
        is_too_soon=is_too_soon,
        days_until=remaining,
        fulfillment_date=fulfillment_date,
        fulfillment_year=fulfillment_date.year,
    )


def days_until_occasion(occasion, clock: Clock | None = None) -> int:
    """Days until the next send of a stored occasion."""
    clock = clock or get_clock()
    if occasion.is_just_because and occasion.computed_send_date:
        return days_until(occasion.computed_send_date, clock)
    return days_until(next_annual_occurrence(occasion.occasion_date, clock.today()), clock)
