"""Clock-time parsing helpers shared by the domain models and the layout engine."""

import math
import re
from datetime import date, datetime, time
from typing import Any, Optional

_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?\s*(AM|PM)?$", re.IGNORECASE)


def parse_clock_time(value: Any) -> time:
    """
    Parse a clock time into a ``datetime.time``.

    Accepts "HH:MM", "HH:MM:SS", "H:MM" and 12-hour "h:MM AM/PM" forms.
    Empty or unparseable values resolve to midnight; an hour of 24 or more
    without an AM/PM suffix wraps to 0.

    Example:
        >>> parse_clock_time("2:30 PM")
        datetime.time(14, 30)
        >>> parse_clock_time("09:05:00")
        datetime.time(9, 5)
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not value or not isinstance(value, str):
        return time(0, 0)

    match = _CLOCK_PATTERN.match(value.strip())
    if not match:
        return time(0, 0)

    hour = int(match.group(1))
    minute = int(match.group(2))
    suffix = (match.group(3) or "").upper()

    if suffix == "PM" and hour < 12:
        hour += 12
    if suffix == "AM" and hour == 12:
        hour = 0
    if not suffix and hour >= 24:
        hour = 0
    if hour > 23 or minute > 59:
        return time(0, 0)

    return time(hour, minute)


def format_clock_time(value: time) -> str:
    """Format a time as 24-hour "HH:MM"."""
    return value.strftime("%H:%M")


def time_to_hours(value: time) -> float:
    """Decimal hours for grid positioning ("14:30" -> 14.5)."""
    return value.hour + value.minute / 60


def hour_span(start: time, end: time) -> tuple:
    """Integer hour columns covering [start, end): (floor(start), ceil(end))."""
    return math.floor(time_to_hours(start)), math.ceil(time_to_hours(end))


def parse_date(value: Any) -> Optional[date]:
    """Parse "YYYY-MM-DD" (or the date part of an ISO timestamp) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; a trailing "Z" is accepted as UTC."""
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
