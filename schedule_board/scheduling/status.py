"""
Session display status.

Derives the presentation-facing status of a session from its snapshot and an
evaluation instant. All functions here are pure: the same (session, now) pair
always yields the same result, so callers recompute on a timer as "now" moves.

Decision table:
- running:  no trainer -> unassigned; clocked in, not out -> in_progress;
            not clocked in -> awaiting_clock_in; otherwise completed
- upcoming: no trainer -> unassigned; cancelled -> cancelled; else scheduled
- past:     cancelled / no_show map through; rescheduled -> issues;
            scheduled with no completion evidence -> incomplete; else completed
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Optional

from schedule_board.domain.session import Session, SessionStatus
from schedule_board.utils.timezone import now_local, to_board_time


class TimeState(Enum):
    """Where "now" falls relative to a session's window."""

    PAST = "past"
    RUNNING = "running"
    UPCOMING = "upcoming"


class DisplayStatus(Enum):
    """Presentation-facing status of a session."""

    COMPLETED = "completed"
    ISSUES = "issues"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    INCOMPLETE = "incomplete"
    IN_PROGRESS = "in_progress"
    AWAITING_CLOCK_IN = "awaiting_clock_in"
    SCHEDULED = "scheduled"
    UNASSIGNED = "unassigned"


DISPLAY_LABELS: Dict[DisplayStatus, str] = {
    DisplayStatus.COMPLETED: "Completed",
    DisplayStatus.ISSUES: "Issues",
    DisplayStatus.CANCELLED: "Cancelled",
    DisplayStatus.NO_SHOW: "No-show",
    DisplayStatus.INCOMPLETE: "Incomplete",
    DisplayStatus.IN_PROGRESS: "In progress",
    DisplayStatus.AWAITING_CLOCK_IN: "Awaiting clock-in",
    DisplayStatus.SCHEDULED: "Scheduled",
    DisplayStatus.UNASSIGNED: "Unassigned",
}

_ACTIVITY_STATUSES = frozenset(
    {DisplayStatus.IN_PROGRESS, DisplayStatus.AWAITING_CLOCK_IN, DisplayStatus.COMPLETED}
)


def time_state(session: Session, now: datetime) -> TimeState:
    """
    Compare "now" with the session window [date+start, date+end).

    A different calendar day decides by date alone; on the same day the clock
    times decide, with the start inclusive and the end exclusive.

    Args:
        session: Session snapshot
        now: Naive wall-clock datetime in the board timezone
    """
    today = now.date()
    if session.date < today:
        return TimeState.PAST
    if session.date > today:
        return TimeState.UPCOMING

    clock = now.time()
    if clock < session.start_time:
        return TimeState.UPCOMING
    if clock >= session.end_time:
        return TimeState.PAST
    return TimeState.RUNNING


def derive_status(session: Session, now: datetime) -> DisplayStatus:
    """
    Map a session snapshot and an evaluation instant to its display status.

    Args:
        session: Session snapshot
        now: Evaluation instant. Aware values are converted to naive board time.

    Returns:
        DisplayStatus

    Example:
        >>> derive_status(unassigned_morning_session, datetime(2024, 6, 10, 10, 0))
        <DisplayStatus.UNASSIGNED: 'unassigned'>
    """
    state = time_state(session, to_board_time(now))

    if state is TimeState.RUNNING:
        if not session.has_trainer:
            return DisplayStatus.UNASSIGNED
        if session.clocked_in_at and not session.clocked_out_at:
            return DisplayStatus.IN_PROGRESS
        if not session.clocked_in_at:
            return DisplayStatus.AWAITING_CLOCK_IN
        return DisplayStatus.COMPLETED

    if state is TimeState.UPCOMING:
        if not session.has_trainer:
            return DisplayStatus.UNASSIGNED
        if session.status is SessionStatus.CANCELLED:
            return DisplayStatus.CANCELLED
        return DisplayStatus.SCHEDULED

    if session.status is SessionStatus.CANCELLED:
        return DisplayStatus.CANCELLED
    if session.status is SessionStatus.NO_SHOW:
        return DisplayStatus.NO_SHOW
    if session.status is SessionStatus.RESCHEDULED:
        return DisplayStatus.ISSUES
    if session.status is SessionStatus.SCHEDULED and not (
        session.completed_at or session.clocked_out_at
    ):
        return DisplayStatus.INCOMPLETE
    return DisplayStatus.COMPLETED


def derive_statuses(
    sessions: Iterable[Session],
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> Dict[str, DisplayStatus]:
    """
    Status for every session of a snapshot, evaluated at one instant.

    Args:
        sessions: Session snapshot
        now: Evaluation instant; defaults to the current board time
        tz_name: Board timezone used when "now" is defaulted or timezone-aware

    Returns:
        Mapping of session id to display status
    """
    instant = to_board_time(now, tz_name) if now is not None else now_local(tz_name)
    return {session.id: derive_status(session, instant) for session in sessions}


def is_viewable_activity(status: DisplayStatus) -> bool:
    """True for statuses that have live or recorded trainer activity to show."""
    return status in _ACTIVITY_STATUSES
