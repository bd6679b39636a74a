"""Scheduling core - status derivation, availability, conflict rules, assignment and layout."""

from .assignment import (
    AssignmentCoordinator,
    AssignmentError,
    AssignmentOutcome,
    AssignmentResult,
    AssignmentState,
)
from .availability import AvailabilityIndex, DayStatus
from .conflicts import ConflictValidator, Decision, overlaps_any
from .drag import DragOperation, DragStateError, DropCell
from .layout import (
    MAX_SESSIONS_PER_CELL,
    build_day_grid,
    build_day_timeline,
    build_list_view,
    build_trainer_grid,
)
from .periods import CalendarPeriod, DateRange, range_for_period
from .status import DISPLAY_LABELS, DisplayStatus, derive_status, derive_statuses

__all__ = [
    "AssignmentCoordinator",
    "AssignmentError",
    "AssignmentOutcome",
    "AssignmentResult",
    "AssignmentState",
    "AvailabilityIndex",
    "DayStatus",
    "ConflictValidator",
    "Decision",
    "overlaps_any",
    "DragOperation",
    "DragStateError",
    "DropCell",
    "MAX_SESSIONS_PER_CELL",
    "build_day_grid",
    "build_day_timeline",
    "build_list_view",
    "build_trainer_grid",
    "CalendarPeriod",
    "DateRange",
    "range_for_period",
    "DISPLAY_LABELS",
    "DisplayStatus",
    "derive_status",
    "derive_statuses",
]
