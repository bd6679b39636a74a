"""
Unit tests for calendar period ranges (schedule_board/scheduling/periods.py)
"""

from datetime import date

import pytest

from schedule_board.scheduling.periods import (
    CalendarPeriod,
    DateRange,
    month_bounds,
    range_for_period,
    week_start,
)


class TestPeriods:
    def test_day_range(self):
        rng = range_for_period("1_day", date(2024, 6, 12))
        assert rng.date_from == rng.date_to == date(2024, 6, 12)
        assert rng.dates == (date(2024, 6, 12),)

    def test_week_starts_monday(self):
        """Test: Wednesday 2024-06-12 belongs to the week of Monday 2024-06-10"""
        rng = range_for_period(CalendarPeriod.WEEK, date(2024, 6, 12))
        assert rng.date_from == date(2024, 6, 10)
        assert rng.date_to == date(2024, 6, 16)
        assert rng.days == 7

    def test_sunday_anchor(self):
        assert week_start(date(2024, 6, 16)) == date(2024, 6, 10)

    def test_month_range_leap_february(self):
        rng = range_for_period("month", date(2024, 2, 10))
        assert (rng.date_from, rng.date_to) == (date(2024, 2, 1), date(2024, 2, 29))
        assert len(rng.dates) == 29

    def test_month_bounds(self):
        assert month_bounds(date(2024, 12, 31)) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            range_for_period("1_year", date(2024, 1, 1))


class TestDateRange:
    def test_contains(self):
        rng = DateRange(date(2024, 6, 10), date(2024, 6, 16))
        assert date(2024, 6, 16) in rng
        assert date(2024, 6, 17) not in rng

    def test_reversed_range_rejected(self):
        with pytest.raises(ValueError):
            DateRange(date(2024, 6, 16), date(2024, 6, 10))

    def test_dates_filled_in(self):
        rng = DateRange(date(2024, 6, 30), date(2024, 7, 2))
        assert rng.dates == (date(2024, 6, 30), date(2024, 7, 1), date(2024, 7, 2))

    def test_same_bounds_are_equal(self):
        assert range_for_period("1_day", date(2024, 6, 10)) == DateRange(
            date(2024, 6, 10), date(2024, 6, 10)
        )
