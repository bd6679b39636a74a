"""Domain models - sessions, bookings and trainer-side inputs."""

from .booking import Booking, flatten_sessions
from .session import Session, SessionStatus, TrainerAssignmentStatus
from .trainer import (
    AbsenceRequest,
    ApprovalState,
    AvailabilitySlot,
    CandidateTrainer,
    Trainer,
)

__all__ = [
    "Booking",
    "flatten_sessions",
    "Session",
    "SessionStatus",
    "TrainerAssignmentStatus",
    "AbsenceRequest",
    "ApprovalState",
    "AvailabilitySlot",
    "CandidateTrainer",
    "Trainer",
]
