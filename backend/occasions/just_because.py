"""
Just Because Scheduler — a surprise send date per recipient per year.

The chosen date must:
  - be at least JUST_BECAUSE_MIN_DAYS away, so the card can be fulfilled
  - stay more than BUFFER_DAYS away from the recipient's other occasions
  - stay more than BUFFER_DAYS away from major fixed and movable holidays

Candidates are every remaining day of the current year that survives the
exclusion windows; one is picked uniformly at random. When nothing
survives (a crowded calendar late in the year) the date falls back to
July 15 without re-checking the windows.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import NamedTuple

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, get_clock
from db.models import Occasion
from occasions.delivery_window import JUST_BECAUSE_MIN_DAYS, in_year
from occasions.holidays import next_occurrence

logger = structlog.get_logger()

JUST_BECAUSE_TYPE = "Just Because"
BUFFER_DAYS = 14

# (month, day) of fixed holidays a surprise card should never crowd
MAJOR_HOLIDAYS = (
    (1, 1),  # New Year's Day
    (2, 14),  # Valentine's Day
    (3, 17),  # St. Patrick's Day
    (7, 4),  # Independence Day
    (10, 31),  # Halloween
    (12, 25),  # Christmas
    (12, 31),  # New Year's Eve
)

MOVABLE_HOLIDAYS = ("Mother's Day", "Father's Day", "Easter", "Thanksgiving")

FALLBACK_MONTH_DAY = (7, 15)

CARD_VARIATIONS = {
    "friend": "thinking_of_you",
    "family": "thinking_of_you",
    "romantic": "romantic",
    "professional": "recognition",
}
DEFAULT_CARD_VARIATION = "thinking_of_you"

CARD_LABELS = {
    "friend": "Thinking of You",
    "family": "Thinking of You",
    "romantic": "Romantic",
    "professional": "Recognition",
}


class ExclusionWindow(NamedTuple):
    anchor: date
    buffer: int = BUFFER_DAYS


def card_variation(relationship: str) -> str:
    """Message tone for a Just Because card, by relationship category."""
    return CARD_VARIATIONS.get((relationship or "").strip().lower(), DEFAULT_CARD_VARIATION)


def just_because_label(relationship: str) -> str:
    return CARD_LABELS.get((relationship or "").strip().lower(), "Just Because")


# ── Pure scheduling ──────────────────────────────────────────────────────


def build_exclusion_windows(
    occasion_dates: list[date],
    year: int,
    clock: Clock | None = None,
) -> list[ExclusionWindow]:
    """
    Exclusion windows for ``year``: each recipient occasion moved into that
    year, every major fixed holiday, and the upcoming instance of each
    movable holiday.
    """
    windows = [ExclusionWindow(in_year(d, year)) for d in occasion_dates]
    windows.extend(ExclusionWindow(date(year, month, day)) for month, day in MAJOR_HOLIDAYS)
    windows.extend(ExclusionWindow(next_occurrence(name, clock)) for name in MOVABLE_HOLIDAYS)
    return windows


def is_date_excluded(candidate: date, windows: list[ExclusionWindow]) -> bool:
    return any(abs((candidate - w.anchor).days) <= w.buffer for w in windows)


def valid_send_dates(
    year: int,
    windows: list[ExclusionWindow],
    clock: Clock | None = None,
) -> list[date]:
    """Every day of ``year`` at least JUST_BECAUSE_MIN_DAYS out and outside all windows."""
    today = (clock or get_clock()).today()
    start = max(date(year, 1, 1), today + timedelta(days=JUST_BECAUSE_MIN_DAYS))
    end = date(year, 12, 31)

    valid = []
    current = start
    while current <= end:
        if not is_date_excluded(current, windows):
            valid.append(current)
        current += timedelta(days=1)
    return valid


def pick_send_date(
    year: int,
    windows: list[ExclusionWindow],
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> date:
    candidates = valid_send_dates(year, windows, clock)
    if not candidates:
        logger.warning("just_because.no_valid_dates", year=year, windows=len(windows))
        return date(year, *FALLBACK_MONTH_DAY)
    return (rng or random).choice(candidates)


# ── Database-bound operations ────────────────────────────────────────────


async def _regular_occasion_dates(db: AsyncSession, recipient_id: int) -> list[date]:
    result = await db.execute(
        select(Occasion.occasion_date).where(
            Occasion.recipient_id == recipient_id,
            Occasion.is_just_because.is_(False),
        )
    )
    return [row for row in result.scalars().all() if row is not None]


async def get_exclusion_windows(
    db: AsyncSession,
    recipient_id: int,
    clock: Clock | None = None,
) -> list[ExclusionWindow]:
    clock = clock or get_clock()
    occasion_dates = await _regular_occasion_dates(db, recipient_id)
    return build_exclusion_windows(occasion_dates, clock.today().year, clock)


async def calculate_just_because_date(
    db: AsyncSession,
    recipient_id: int,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> date:
    """Pick a fresh surprise date for a recipient in the current year."""
    clock = clock or get_clock()
    windows = await get_exclusion_windows(db, recipient_id, clock)
    return pick_send_date(clock.today().year, windows, clock, rng)


async def get_just_because_occasion(db: AsyncSession, recipient_id: int) -> Occasion | None:
    result = await db.execute(
        select(Occasion)
        .where(Occasion.recipient_id == recipient_id, Occasion.is_just_because.is_(True))
        .order_by(Occasion.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def reschedule_if_needed(
    db: AsyncSession,
    recipient_id: int,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> date | None:
    """
    Re-validate the recipient's Just Because date after their occasions changed.

    The stored date is only replaced when it now falls inside an exclusion
    window. Returns the new date, or None when nothing changed. The caller
    owns the commit.
    """
    clock = clock or get_clock()
    just_because = await get_just_because_occasion(db, recipient_id)
    if just_because is None or just_because.computed_send_date is None:
        return None

    windows = await get_exclusion_windows(db, recipient_id, clock)
    if not is_date_excluded(just_because.computed_send_date, windows):
        return None

    new_date = pick_send_date(clock.today().year, windows, clock, rng)
    just_because.computed_send_date = new_date
    just_because.occasion_date = new_date
    await db.flush()

    logger.info(
        "just_because.rescheduled",
        recipient_id=recipient_id,
        occasion_id=just_because.id,
        send_date=new_date.isoformat(),
    )
    return new_date
