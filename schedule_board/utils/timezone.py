"""
Timezone utilities for the schedule board.

Session dates and clock times are wall-clock values in the business timezone,
so "now" has to be taken in that same zone regardless of where the board runs.
"""

from datetime import datetime
from typing import Optional

import pytz

DEFAULT_TIMEZONE = "Europe/London"


def board_timezone(name: Optional[str] = None):
    """Return the pytz timezone for the board (defaults to Europe/London)."""
    return pytz.timezone(name or DEFAULT_TIMEZONE)


def now_local(tz_name: Optional[str] = None, aware: bool = False) -> datetime:
    """
    Return the current time in the board timezone.

    Args:
        tz_name: IANA timezone name; defaults to DEFAULT_TIMEZONE.
        aware: When True, returns a timezone-aware datetime. When False (default),
            returns a naive wall-clock datetime comparable to session date/time values.

    Returns:
        datetime: Current time in the board timezone.
    """
    current = datetime.now(pytz.utc).astimezone(board_timezone(tz_name))
    return current if aware else current.replace(tzinfo=None)


def to_board_time(value: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Normalise a datetime to naive board wall-clock time.

    Naive values are assumed to already be board-local and are returned unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(board_timezone(tz_name)).replace(tzinfo=None)
