"""
Session domain model.

A session is one scheduled occurrence of an activity within a booking. The
board reads sessions as snapshots; only the trainer assignment is ever changed,
and only through the external write API.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Optional

from schedule_board.utils.clock import (
    format_clock_time,
    parse_clock_time,
    parse_date,
    parse_timestamp,
)


class SessionStatus(Enum):
    """Persisted session status, as written by the booking workflow."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"

    @classmethod
    def parse(cls, value: Any) -> "SessionStatus":
        """Parse a raw status string; missing or unrecognised values read as scheduled."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "scheduled").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.SCHEDULED


class TrainerAssignmentStatus(Enum):
    """Whether the assigned trainer has confirmed the session."""

    NONE = "none"
    PENDING_TRAINER_CONFIRMATION = "pending_trainer_confirmation"
    TRAINER_CONFIRMED = "trainer_confirmed"

    @classmethod
    def parse(cls, value: Any) -> "TrainerAssignmentStatus":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.NONE


@dataclass(frozen=True)
class Session:
    """
    Snapshot of a single session as the board sees it.

    Attributes:
        id: Session identifier
        booking_id: Owning booking identifier
        date: Calendar day of the session
        start_time: Wall-clock start (board timezone)
        end_time: Wall-clock end (board timezone)
        trainer_id: Assigned trainer, or None for the unassigned lane
        status: Persisted session status
        trainer_assignment_status: Confirmation state of the assigned trainer;
            always NONE when no trainer is assigned
        clocked_in_at / clocked_out_at / completed_at: Optional timestamps

    Display-only context (from the booking): booking_reference, trainer_name,
    parent_name, children_summary, package_name.
    """

    id: str
    booking_id: str
    date: date
    start_time: time
    end_time: time
    trainer_id: Optional[str] = None
    status: SessionStatus = SessionStatus.SCHEDULED
    trainer_assignment_status: TrainerAssignmentStatus = TrainerAssignmentStatus.NONE
    clocked_in_at: Optional[datetime] = None
    clocked_out_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    booking_reference: str = ""
    trainer_name: Optional[str] = None
    parent_name: str = ""
    children_summary: str = ""
    package_name: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not self.trainer_id and self.trainer_assignment_status is not TrainerAssignmentStatus.NONE:
            object.__setattr__(self, "trainer_assignment_status", TrainerAssignmentStatus.NONE)

    @property
    def has_trainer(self) -> bool:
        return bool(self.trainer_id)

    @property
    def is_trainer_confirmed(self) -> bool:
        """A confirmed session is locked against reassignment and unassignment."""
        return (
            self.has_trainer
            and self.trainer_assignment_status is TrainerAssignmentStatus.TRAINER_CONFIRMED
        )

    @property
    def lane_id(self) -> str:
        """Grid lane key: the trainer id, or "" for the unassigned lane."""
        return self.trainer_id or ""

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], booking_context: Optional[Dict[str, Any]] = None
    ) -> "Session":
        """
        Create Session from an API payload.

        Accepts the camelCase keys returned by the bookings API. Booking-level
        display context (reference, parent name, etc.) can be passed separately.

        Raises:
            ValueError: If the payload has no usable id, date, start or end time
        """
        booking_context = booking_context or {}

        session_id = data.get("id", data.get("sessionId"))
        session_date = parse_date(data.get("date"))
        raw_start = data.get("startTime", data.get("start_time"))
        raw_end = data.get("endTime", data.get("end_time"))

        if session_id in (None, "") or session_date is None or not raw_start or not raw_end:
            raise ValueError(f"Session payload is missing id, date or times: {data!r}")

        trainer_id = data.get("trainerId", data.get("trainer_id"))

        core_keys = {
            "id",
            "sessionId",
            "date",
            "startTime",
            "endTime",
            "start_time",
            "end_time",
            "trainerId",
            "trainer_id",
            "trainerName",
            "status",
            "trainerAssignmentStatus",
            "clockedInAt",
            "clockedOutAt",
            "completedAt",
        }

        return cls(
            id=str(session_id),
            booking_id=str(booking_context.get("booking_id", data.get("bookingId", ""))),
            date=session_date,
            start_time=parse_clock_time(raw_start),
            end_time=parse_clock_time(raw_end),
            trainer_id=str(trainer_id) if trainer_id not in (None, "") else None,
            status=SessionStatus.parse(data.get("status")),
            trainer_assignment_status=TrainerAssignmentStatus.parse(
                data.get("trainerAssignmentStatus")
            ),
            clocked_in_at=parse_timestamp(data.get("clockedInAt")),
            clocked_out_at=parse_timestamp(data.get("clockedOutAt")),
            completed_at=parse_timestamp(data.get("completedAt")),
            booking_reference=booking_context.get("reference", ""),
            trainer_name=data.get("trainerName"),
            parent_name=booking_context.get("parent_name", ""),
            children_summary=booking_context.get("children_summary", ""),
            package_name=booking_context.get("package_name"),
            extra_fields={k: v for k, v in data.items() if k not in core_keys},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the camelCase shape used by the API."""

        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "bookingId": self.booking_id,
            "date": self.date.isoformat(),
            "startTime": format_clock_time(self.start_time),
            "endTime": format_clock_time(self.end_time),
            "trainerId": self.trainer_id,
            "trainerName": self.trainer_name,
            "status": self.status.value,
            "trainerAssignmentStatus": self.trainer_assignment_status.value,
            "clockedInAt": _iso(self.clocked_in_at),
            "clockedOutAt": _iso(self.clocked_out_at),
            "completedAt": _iso(self.completed_at),
        }

