"""
Assignment coordinator.

Turns user intents (assign, unassign, drop on a grid cell) into trainer writes
against the schedule API. Each session has its own small state machine:

    idle --request--> assigning --success--> idle
                                 --failure--> error   (accepts new requests)

A request for a session that is already assigning is rejected immediately;
sessions never block each other. Nothing is mutated locally: after a
successful write the injected refresh callback refetches the read models.
"""

import threading
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Optional

from schedule_board.api.schedule_api import (
    ScheduleAPIClient,
    ScheduleTransportError,
    ScheduleValidationError,
)
from schedule_board.domain.session import Session
from schedule_board.notifications.notices import NoticeBoard
from schedule_board.scheduling.conflicts import REASON_CONFIRMED, REASON_CROSS_DATE, ConflictValidator
from schedule_board.utils.logger import get_logger, log_operation

logger = get_logger(__name__)

ACTION_ASSIGN = "assign"
ACTION_UNASSIGN = "unassign"

NOTICE_SOURCE = "assignment"


class AssignmentError(Exception):
    """Base class for assignment workflow misuse."""


class AssignmentState(Enum):
    IDLE = "idle"
    ASSIGNING = "assigning"
    ERROR = "error"


class AssignmentOutcome(Enum):
    """How an assignment request ended."""

    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    NOOP = "noop"
    REJECTED = "rejected"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class AssignmentResult:
    """
    Result of one assignment request.

    Attributes:
        session_id: Session the request targeted
        action: "assign" or "unassign"
        outcome: AssignmentOutcome
        trainer_id: Trainer written (None for unassign)
        message: Human-readable message for inline display
        error: Underlying transport error, if the write failed
        code: Rejection code from the conflict rules, if rejected
    """

    session_id: str
    action: str
    outcome: AssignmentOutcome
    trainer_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[Exception] = None
    code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome in (
            AssignmentOutcome.ASSIGNED,
            AssignmentOutcome.UNASSIGNED,
            AssignmentOutcome.NOOP,
        )

    @property
    def changed(self) -> bool:
        """True when a write was committed on the server."""
        return self.outcome in (AssignmentOutcome.ASSIGNED, AssignmentOutcome.UNASSIGNED)


class AssignmentCoordinator:
    """
    Serialises trainer writes per session.

    Args:
        api_client: Schedule API client used for the trainer write
        validator: Conflict gate in front of every assign and drop
        session_lookup: Returns the current snapshot of a session by id
        refresh: Called with the action after a committed write to refetch
            dependent read state
        notices: Board notices; write failures are raised here
    """

    def __init__(
        self,
        api_client: ScheduleAPIClient,
        validator: ConflictValidator,
        session_lookup: Callable[[str], Optional[Session]],
        refresh: Optional[Callable[[str], Any]] = None,
        notices: Optional[NoticeBoard] = None,
    ):
        self.api_client = api_client
        self.validator = validator
        self._session_lookup = session_lookup
        self._refresh = refresh
        self.notices = notices

        self._lock = threading.Lock()
        self._states: Dict[str, AssignmentState] = {}
        self._last_errors: Dict[str, AssignmentResult] = {}

    # ------------------------------------------------------------------
    # State inspection
    # ------------------------------------------------------------------

    def state_of(self, session_id: str) -> AssignmentState:
        with self._lock:
            return self._states.get(str(session_id), AssignmentState.IDLE)

    def is_assigning(self, session_id: str) -> bool:
        return self.state_of(session_id) is AssignmentState.ASSIGNING

    def last_error(self, session_id: str) -> Optional[AssignmentResult]:
        """Most recent failed result for a session while it is in the error state."""
        with self._lock:
            if self._states.get(str(session_id)) is not AssignmentState.ERROR:
                return None
            return self._last_errors.get(str(session_id))

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def assign(self, session_id: str, trainer_id: str) -> AssignmentResult:
        """
        Assign a trainer to a session on the session's own date.

        The move goes through the conflict gate first; trainer-confirmed
        sessions and absent or unavailable trainers are rejected before any
        network call.
        """
        session_id = str(session_id)
        trainer_id = str(trainer_id)
        session = self._session_lookup(session_id)
        if session is None:
            return self._unknown_session(session_id, ACTION_ASSIGN, trainer_id)
        if session.is_trainer_confirmed:
            return self._rejected(session_id, ACTION_ASSIGN, trainer_id, "confirmed", REASON_CONFIRMED)

        decision = self.validator.can_assign(session, trainer_id, session.date)
        if not decision.allowed:
            return self._rejected(session_id, ACTION_ASSIGN, trainer_id, decision.code, decision.reason)
        return self._run_write(session_id, ACTION_ASSIGN, trainer_id)

    def unassign(self, session_id: str) -> AssignmentResult:
        """Clear the trainer of a session."""
        session_id = str(session_id)
        session = self._session_lookup(session_id)
        if session is None:
            return self._unknown_session(session_id, ACTION_UNASSIGN, None)
        if session.is_trainer_confirmed:
            return self._rejected(session_id, ACTION_UNASSIGN, None, "confirmed", REASON_CONFIRMED)
        if not session.has_trainer:
            return AssignmentResult(
                session_id=session_id,
                action=ACTION_UNASSIGN,
                outcome=AssignmentOutcome.NOOP,
                message="Session has no trainer",
            )
        return self._run_write(session_id, ACTION_UNASSIGN, None)

    def drop_on_cell(
        self,
        session_id: str,
        target_trainer_id: Optional[str],
        target_date: date,
    ) -> AssignmentResult:
        """
        Handle a session dropped on a (trainer, date) cell.

        A None trainer is the unassigned lane. Confirmed sessions and drops on
        another date are rejected, whatever the lane. Dropping on the cell the
        session already occupies, or an unassigned session on its own day's
        unassigned lane, does nothing.
        """
        session_id = str(session_id)
        target = str(target_trainer_id) if target_trainer_id not in (None, "") else None
        action = ACTION_ASSIGN if target is not None else ACTION_UNASSIGN

        session = self._session_lookup(session_id)
        if session is None:
            return self._unknown_session(session_id, action, target)
        if session.is_trainer_confirmed:
            return self._rejected(session_id, action, target, "confirmed", REASON_CONFIRMED)
        if target_date != session.date:
            return self._rejected(session_id, action, target, "cross_date", REASON_CROSS_DATE)

        if target == session.trainer_id or (target is None and not session.has_trainer):
            return AssignmentResult(
                session_id=session_id,
                action=action,
                outcome=AssignmentOutcome.NOOP,
                trainer_id=target,
                message="Session is already in this cell",
            )

        if target is None:
            return self.unassign(session_id)
        return self.assign(session_id, target)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _try_begin(self, session_id: str) -> bool:
        with self._lock:
            if self._states.get(session_id) is AssignmentState.ASSIGNING:
                return False
            self._states[session_id] = AssignmentState.ASSIGNING
            self._last_errors.pop(session_id, None)
            return True

    def _finish(self, session_id: str, failure: Optional[AssignmentResult] = None) -> None:
        with self._lock:
            if failure is None:
                self._states[session_id] = AssignmentState.IDLE
            else:
                self._states[session_id] = AssignmentState.ERROR
                self._last_errors[session_id] = failure

    def _run_write(self, session_id: str, action: str, trainer_id: Optional[str]) -> AssignmentResult:
        if not self._try_begin(session_id):
            logger.info(
                "Assignment already in flight; request rejected",
                operation="assign_trainer",
                context={"session_id": session_id, "action": action},
            )
            return AssignmentResult(
                session_id=session_id,
                action=action,
                outcome=AssignmentOutcome.BUSY,
                trainer_id=trainer_id,
                message="An assignment for this session is already in progress",
            )

        try:
            self._write(session_id=session_id, trainer_id=trainer_id)
        except ScheduleValidationError as e:
            failure = self._failed(session_id, action, trainer_id, e, e.message)
            self._finish(session_id, failure)
            return failure
        except ScheduleTransportError as e:
            failure = self._failed(
                session_id, action, trainer_id, e, f"Failed to {action} trainer: {e}"
            )
            self._finish(session_id, failure)
            return failure

        self._finish(session_id)
        result = AssignmentResult(
            session_id=session_id,
            action=action,
            outcome=(
                AssignmentOutcome.ASSIGNED if action == ACTION_ASSIGN else AssignmentOutcome.UNASSIGNED
            ),
            trainer_id=trainer_id,
            message="Trainer assigned" if action == ACTION_ASSIGN else "Trainer unassigned",
        )
        self._refresh_after(result)
        return result

    @log_operation("write_session_trainer")
    def _write(self, session_id: str, trainer_id: Optional[str]) -> None:
        self.api_client.set_session_trainer(session_id, trainer_id)

    def _refresh_after(self, result: AssignmentResult) -> None:
        if self._refresh is None:
            return
        try:
            self._refresh(result.action)
        except Exception as e:
            # The write is committed; a stale view is reported, not rolled back
            logger.error(
                "Refresh after assignment failed",
                operation="refresh_after_assignment",
                context={"session_id": result.session_id, "action": result.action},
                error=str(e),
            )
            if self.notices is not None:
                self.notices.raise_notice(
                    "Trainer change saved, but the board could not refresh. Refresh manually.",
                    source=NOTICE_SOURCE,
                )

    def _failed(
        self,
        session_id: str,
        action: str,
        trainer_id: Optional[str],
        error: Exception,
        message: str,
    ) -> AssignmentResult:
        logger.error(
            "Trainer write failed",
            operation="assign_trainer",
            context={"session_id": session_id, "action": action, "trainer_id": trainer_id},
            error=str(error),
        )
        if self.notices is not None:
            self.notices.raise_notice(message, source=NOTICE_SOURCE)
        return AssignmentResult(
            session_id=session_id,
            action=action,
            outcome=AssignmentOutcome.FAILED,
            trainer_id=trainer_id,
            message=message,
            error=error,
        )

    def _rejected(
        self,
        session_id: str,
        action: str,
        trainer_id: Optional[str],
        code: Optional[str],
        reason: Optional[str],
    ) -> AssignmentResult:
        logger.debug(
            "Assignment rejected",
            operation="assign_trainer",
            context={"session_id": session_id, "action": action, "trainer_id": trainer_id, "code": code},
        )
        return AssignmentResult(
            session_id=session_id,
            action=action,
            outcome=AssignmentOutcome.REJECTED,
            trainer_id=trainer_id,
            message=reason,
            code=code,
        )

    def _unknown_session(
        self, session_id: str, action: str, trainer_id: Optional[str]
    ) -> AssignmentResult:
        return self._rejected(
            session_id, action, trainer_id, "unknown_session", "Session is no longer on the board"
        )
