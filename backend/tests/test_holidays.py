"""
Tests for the holiday calendar.

Covers:
  - Easter (Computus) against published dates
  - Nth-weekday holidays (Mother's Day, Father's Day, Thanksgiving)
  - Fixed-date lookup and the unknown-name fallback
  - Next occurrence relative to an injected clock
"""

from datetime import date

import pytest

from core.clock import FixedClock
from occasions.holidays import (
    HOLIDAY_NAMES,
    compute_easter,
    holiday_date,
    is_holiday,
    is_variable_holiday,
    next_occurrence,
    nth_weekday_of_month,
    upcoming_holidays,
)

# ── Easter ─────────────────────────────────────────────────────────────

PUBLISHED_EASTER = [
    date(2000, 4, 23),
    date(2008, 3, 23),
    date(2011, 4, 24),
    date(2019, 4, 21),
    date(2020, 4, 12),
    date(2021, 4, 4),
    date(2022, 4, 17),
    date(2023, 4, 9),
    date(2024, 3, 31),
    date(2025, 4, 20),
    date(2026, 4, 5),
    date(2027, 3, 28),
    date(2038, 4, 25),
]


class TestEaster:
    @pytest.mark.parametrize("expected", PUBLISHED_EASTER, ids=lambda d: str(d.year))
    def test_matches_published_dates(self, expected):
        assert compute_easter(expected.year) == expected
        assert holiday_date("Easter", expected.year) == expected

    def test_always_a_sunday(self):
        for year in range(1900, 2200):
            assert compute_easter(year).weekday() == 6, year

    def test_stays_in_march_or_april(self):
        for year in range(1900, 2200):
            easter = compute_easter(year)
            assert date(year, 3, 22) <= easter <= date(year, 4, 25)


# ── Nth-weekday holidays ───────────────────────────────────────────────


class TestNthWeekdayHolidays:
    def test_thanksgiving_is_fourth_thursday_of_november(self):
        for year in range(2000, 2100):
            day = holiday_date("Thanksgiving", year)
            assert day.month == 11
            assert day.weekday() == 3
            assert 22 <= day.day <= 28

    def test_mothers_day_is_second_sunday_of_may(self):
        for year in range(2000, 2100):
            day = holiday_date("Mother's Day", year)
            assert day.month == 5
            assert day.weekday() == 6
            assert 8 <= day.day <= 14

    def test_fathers_day_is_third_sunday_of_june(self):
        for year in range(2000, 2100):
            day = holiday_date("Father's Day", year)
            assert day.month == 6
            assert day.weekday() == 6
            assert 15 <= day.day <= 21

    def test_known_2026_dates(self):
        assert holiday_date("Thanksgiving", 2026) == date(2026, 11, 26)
        assert holiday_date("Mother's Day", 2026) == date(2026, 5, 10)
        assert holiday_date("Father's Day", 2026) == date(2026, 6, 21)

    def test_nth_weekday_when_month_starts_on_that_weekday(self):
        # November 1, 2029 is a Thursday
        assert nth_weekday_of_month(2029, 11, 3, 1) == date(2029, 11, 1)
        assert nth_weekday_of_month(2029, 11, 3, 4) == date(2029, 11, 22)


# ── Fixed holidays and lookups ─────────────────────────────────────────


class TestFixedHolidays:
    @pytest.mark.parametrize(
        "name,month,day",
        [
            ("New Year's", 1, 1),
            ("Valentine's Day", 2, 14),
            ("St. Patrick's Day", 3, 17),
            ("Independence Day", 7, 4),
            ("Halloween", 10, 31),
            ("Christmas", 12, 25),
        ],
    )
    def test_fixed_dates(self, name, month, day):
        assert holiday_date(name, 2031) == date(2031, month, day)
        assert is_holiday(name)
        assert not is_variable_holiday(name)

    def test_unknown_holiday_falls_back_to_new_year(self):
        assert holiday_date("Groundhog Day", 2026) == date(2026, 1, 1)
        assert not is_holiday("Groundhog Day")

    def test_every_listed_holiday_resolves(self):
        for name in HOLIDAY_NAMES:
            assert is_holiday(name)
            assert holiday_date(name, 2026).year == 2026


# ── Next occurrence ────────────────────────────────────────────────────


class TestNextOccurrence:
    def test_later_this_year(self):
        assert next_occurrence("Easter", FixedClock(date(2026, 3, 1))) == date(2026, 4, 5)

    def test_already_passed_rolls_to_next_year(self):
        assert next_occurrence("Valentine's Day", FixedClock(date(2026, 3, 1))) == date(2027, 2, 14)

    def test_on_the_day_itself_uses_next_year(self):
        assert next_occurrence("Christmas", FixedClock(date(2026, 12, 25))) == date(2027, 12, 25)

    def test_movable_holiday_recomputed_for_next_year(self):
        assert next_occurrence("Thanksgiving", FixedClock(date(2026, 12, 1))) == date(2027, 11, 25)

    def test_upcoming_holidays_sorted_soonest_first(self):
        upcoming = upcoming_holidays(3, FixedClock(date(2026, 3, 1)))
        assert [h.name for h in upcoming] == ["St. Patrick's Day", "Easter", "Mother's Day"]
        assert upcoming[0].days_until == 16
