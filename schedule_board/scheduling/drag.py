"""
Drag-and-drop of sessions between grid cells.

A drag is an explicit four-step operation:

    begin(session) -> validate(cell)* -> commit(cell) -> resolve()

validate() is pure and may be called any number of times while hovering.
cancel() before commit has no side effects. commit() is single-shot and hands
the drop to the AssignmentCoordinator; once committed the write cannot be
cancelled.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from schedule_board.domain.session import Session
from schedule_board.scheduling.assignment import (
    AssignmentCoordinator,
    AssignmentError,
    AssignmentResult,
)
from schedule_board.scheduling.conflicts import REASON_CROSS_DATE, Decision
from schedule_board.utils.logger import get_logger

logger = get_logger(__name__)


class DragStateError(AssignmentError):
    """Raised when a drag step is called out of order."""


@dataclass(frozen=True)
class DropCell:
    """A grid cell: trainer lane (None for unassigned) and date."""

    trainer_id: Optional[str]
    date: date

    @property
    def is_unassigned_lane(self) -> bool:
        return self.trainer_id in (None, "")


@dataclass(frozen=True)
class DragPayload:
    """What a drag carries: the session and the cell it started from."""

    session_id: str
    origin: DropCell


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTED = "committed"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class DragOperation:
    """One drag gesture from pick-up to drop."""

    def __init__(self, coordinator: AssignmentCoordinator):
        self.coordinator = coordinator
        self.state = DragState.IDLE
        self.payload: Optional[DragPayload] = None
        self.result: Optional[AssignmentResult] = None
        self._session: Optional[Session] = None

    def begin(self, session: Session) -> DragPayload:
        """
        Pick up a session.

        Raises:
            DragStateError: If a drag is already under way, or the session is
                trainer-confirmed and therefore not draggable
        """
        if self.state is not DragState.IDLE:
            raise DragStateError(f"Cannot begin a drag in state {self.state.value}")
        if session.is_trainer_confirmed:
            raise DragStateError(f"Session {session.id} is trainer-confirmed and cannot be moved")

        self._session = session
        self.payload = DragPayload(
            session_id=session.id,
            origin=DropCell(trainer_id=session.trainer_id, date=session.date),
        )
        self.state = DragState.DRAGGING
        logger.debug(
            "Drag started",
            operation="drag_session",
            context={"session_id": session.id, "trainer_id": session.trainer_id},
        )
        return self.payload

    def validate(self, cell: DropCell) -> Decision:
        """
        Whether dropping on a cell would be accepted, for hover highlighting.

        Side-effect free; the origin cell always validates.
        """
        session = self._require_dragging("validate")
        target = None if cell.is_unassigned_lane else str(cell.trainer_id)

        if target == session.trainer_id and cell.date == session.date:
            return Decision.allow()
        if target is None:
            if cell.date != session.date:
                return Decision.reject("cross_date", REASON_CROSS_DATE)
            return Decision.allow()
        return self.coordinator.validator.can_assign(session, target, cell.date)

    def commit(self, cell: DropCell) -> AssignmentResult:
        """
        Drop the session on a cell. Single-shot.

        Raises:
            DragStateError: If not dragging (already committed, cancelled or never begun)
        """
        session = self._require_dragging("commit")
        self.state = DragState.COMMITTED
        self.result = self.coordinator.drop_on_cell(session.id, cell.trainer_id, cell.date)
        return self.result

    def resolve(self) -> AssignmentResult:
        """Finish a committed drag and hand back its result."""
        if self.state is not DragState.COMMITTED or self.result is None:
            raise DragStateError(f"Cannot resolve a drag in state {self.state.value}")
        self.state = DragState.RESOLVED
        logger.debug(
            "Drag resolved",
            operation="drag_session",
            context={"session_id": self.result.session_id, "outcome": self.result.outcome.value},
        )
        return self.result

    def cancel(self) -> None:
        """
        Abandon the drag before commit.

        Raises:
            DragStateError: If the drop was already committed
        """
        if self.state in (DragState.COMMITTED, DragState.RESOLVED):
            raise DragStateError("A committed drag cannot be cancelled")
        self.state = DragState.CANCELLED
        self._session = None

    def _require_dragging(self, step: str) -> Session:
        if self.state is not DragState.DRAGGING or self._session is None:
            raise DragStateError(f"Cannot {step} a drag in state {self.state.value}")
        return self._session
