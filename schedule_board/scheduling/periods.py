"""Date ranges for the board's calendar periods (day, Monday-based week, month)."""

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import List, Tuple, Union


class CalendarPeriod(Enum):
    DAY = "1_day"
    WEEK = "1_week"
    MONTH = "1_month"

    @classmethod
    def parse(cls, value: Union[str, "CalendarPeriod"]) -> "CalendarPeriod":
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value or member.name.lower() == str(value).lower():
                return member
        raise ValueError(f"Unknown calendar period: {value!r}")


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range with its days listed in order."""

    date_from: date
    date_to: date
    dates: Tuple[date, ...] = field(default=(), compare=False)

    def __post_init__(self):
        if self.date_to < self.date_from:
            raise ValueError(f"date_to {self.date_to} is before date_from {self.date_from}")
        if not self.dates:
            object.__setattr__(self, "dates", tuple(_days_between(self.date_from, self.date_to)))

    @property
    def days(self) -> int:
        return (self.date_to - self.date_from).days + 1

    def __contains__(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to


def _days_between(start: date, end: date) -> List[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


def month_bounds(day: date) -> Tuple[date, date]:
    """First and last day of the calendar month containing day."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def range_for_period(period: Union[str, CalendarPeriod], anchor: date) -> DateRange:
    """
    Date range shown for a calendar period around an anchor date.

    Example:
        >>> range_for_period("1_week", date(2024, 6, 12)).date_from
        datetime.date(2024, 6, 10)
    """
    period = CalendarPeriod.parse(period)
    if period is CalendarPeriod.DAY:
        return DateRange(anchor, anchor)
    if period is CalendarPeriod.WEEK:
        start = week_start(anchor)
        return DateRange(start, start + timedelta(days=6))
    first, last = month_bounds(anchor)
    return DateRange(first, last)
