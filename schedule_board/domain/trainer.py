"""
Trainer-side domain models: roster entries, declared availability slots,
absence requests and server-computed assignment candidates.
"""

from dataclasses import dataclass
from datetime import date, time, timedelta
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from schedule_board.utils.clock import parse_clock_time, parse_date


@dataclass(frozen=True)
class Trainer:
    """Roster entry."""

    id: str
    name: str
    active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trainer":
        active = data.get("isActive", data.get("active", True))
        return cls(id=str(data["id"]), name=data.get("name", "") or "", active=bool(active))


@dataclass(frozen=True)
class AvailabilitySlot:
    """
    A trainer-declared window on one date.

    is_available distinguishes an explicit "available" marking from an
    explicit "unavailable" one.
    """

    trainer_id: str
    date: date
    start_time: time
    end_time: time
    is_available: bool = True

    @classmethod
    def from_dict(cls, trainer_id: str, data: Dict[str, Any]) -> "AvailabilitySlot":
        """
        Build a slot from one entry of the availability feed.

        Raises:
            ValueError: If the entry has no parseable date
        """
        slot_date = parse_date(data.get("date"))
        if slot_date is None:
            raise ValueError(f"Availability slot has no valid date: {data!r}")
        return cls(
            trainer_id=str(trainer_id),
            date=slot_date,
            start_time=parse_clock_time(data.get("startTime")),
            end_time=parse_clock_time(data.get("endTime")),
            is_available=bool(data.get("isAvailable", True)),
        )


class ApprovalState(Enum):
    """Approval state of an absence request."""

    PENDING = "pending"
    APPROVED = "approved"


@dataclass(frozen=True)
class AbsenceRequest:
    """A trainer's request to be excluded from scheduling for a date range (inclusive)."""

    trainer_id: str
    date_from: date
    date_to: date
    approval_state: ApprovalState = ApprovalState.PENDING

    @property
    def is_approved(self) -> bool:
        return self.approval_state is ApprovalState.APPROVED

    def covers(self, day: date) -> bool:
        return self.date_from <= day <= self.date_to

    def days(self) -> Iterator[date]:
        """Every calendar day covered by the request."""
        current = self.date_from
        while current <= self.date_to:
            yield current
            current += timedelta(days=1)


@dataclass(frozen=True)
class CandidateTrainer:
    """
    A trainer the server considers assignable to a specific unassigned session.

    The server applies conflict, availability and qualification checks; the
    board treats the list as opaque and authoritative.
    """

    id: str
    name: str
    score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateTrainer":
        score = data.get("score")
        return cls(
            id=str(data["id"]),
            name=data.get("name", "") or "",
            score=float(score) if score is not None else None,
        )
