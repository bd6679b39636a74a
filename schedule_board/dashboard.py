"""
Schedule board orchestrator.

Owns the selected date range and the latest snapshot of every read model
(sessions, trainers, availability index, candidate trainers) and wires the
pure scheduling functions to the API client, the live refresh dispatcher and
the notice board.

Each read model is fetched independently. A failed read raises a notice and
keeps that model's previous value, so one broken feed never blanks the board.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union

from schedule_board.api.schedule_api import ScheduleAPIClient, ScheduleTransportError
from schedule_board.config.settings import SecretRedactionFilter, Settings, setup_logging_redaction
from schedule_board.domain.session import Session
from schedule_board.domain.trainer import CandidateTrainer, Trainer
from schedule_board.notifications.live_refresh import (
    BOOKINGS,
    NOTIFICATIONS,
    TRAINER_AVAILABILITY,
    TRAINER_SCHEDULES,
    LiveRefreshDispatcher,
)
from schedule_board.notifications.notices import NoticeBoard
from schedule_board.scheduling.assignment import (
    ACTION_ASSIGN,
    AssignmentCoordinator,
    AssignmentError,
    AssignmentResult,
)
from schedule_board.scheduling.availability import (
    AvailabilityIndex,
    parse_absence_payload,
    parse_availability_payload,
)
from schedule_board.scheduling.conflicts import ConflictValidator
from schedule_board.scheduling.drag import DragOperation
from schedule_board.scheduling.layout import (
    MAX_SESSIONS_PER_CELL,
    DayColumn,
    DayTimeline,
    PlacedSession,
    TrainerGrid,
    build_day_grid,
    build_day_timeline,
    build_list_view,
    build_trainer_grid,
)
from schedule_board.scheduling.periods import CalendarPeriod, DateRange, range_for_period
from schedule_board.scheduling.status import DisplayStatus, derive_statuses
from schedule_board.utils.logger import get_logger, log_operation
from schedule_board.utils.timezone import DEFAULT_TIMEZONE, now_local, to_board_time

logger = get_logger(__name__)

SOURCE_SESSIONS = "sessions"
SOURCE_TRAINERS = "trainers"
SOURCE_AVAILABILITY = "availability"
SOURCE_ABSENCE = "absence"


class ScheduleBoard:
    """
    One operator's view of the schedule for a date range.

    Args:
        api_client: Schedule API client
        dispatcher: Live refresh dispatcher; the board subscribes its refresh
        notices: Notice board for read and write failures
        timezone: Board timezone used for "now"
        max_sessions_per_cell: Visible sessions per trainer grid cell
    """

    def __init__(
        self,
        api_client: ScheduleAPIClient,
        dispatcher: Optional[LiveRefreshDispatcher] = None,
        notices: Optional[NoticeBoard] = None,
        timezone: str = DEFAULT_TIMEZONE,
        max_sessions_per_cell: int = MAX_SESSIONS_PER_CELL,
    ):
        self.api_client = api_client
        self.dispatcher = dispatcher or LiveRefreshDispatcher()
        self.notices = notices or NoticeBoard()
        self.timezone = timezone
        self.max_sessions_per_cell = max_sessions_per_cell

        self.date_range: Optional[DateRange] = None
        self.sessions: List[Session] = []
        self.trainers: List[Trainer] = []
        self.index = AvailabilityIndex.empty()
        self.candidates: Dict[str, List[CandidateTrainer]] = {}
        self._indexed_range: Optional[DateRange] = None
        self.redaction_filter: Optional[SecretRedactionFilter] = None

        self.validator = ConflictValidator(lambda: self.index)
        self.coordinator = AssignmentCoordinator(
            api_client=api_client,
            validator=self.validator,
            session_lookup=self.get_session,
            refresh=self._after_assignment,
            notices=self.notices,
        )

        self._unsubscribers = [
            self.dispatcher.subscribe(context, self._on_change)
            for context in (BOOKINGS, TRAINER_SCHEDULES, TRAINER_AVAILABILITY)
        ]

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        api_client: Optional[ScheduleAPIClient] = None,
        dispatcher: Optional[LiveRefreshDispatcher] = None,
    ) -> "ScheduleBoard":
        """Build a board from configuration, with the API token redacted from all logs."""
        redaction_filter = setup_logging_redaction(settings)
        board = cls(
            api_client=api_client or ScheduleAPIClient.from_settings(settings),
            dispatcher=dispatcher,
            timezone=settings.timezone,
            max_sessions_per_cell=settings.max_sessions_per_cell,
        )
        board.redaction_filter = redaction_filter
        return board

    def close(self) -> None:
        """Stop reacting to change notifications."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ------------------------------------------------------------------
    # Range selection and refresh
    # ------------------------------------------------------------------

    def load(
        self, period: Union[str, CalendarPeriod], anchor: Optional[date] = None
    ) -> Dict[str, bool]:
        """Select the range for a calendar period around anchor (default: today) and refresh."""
        anchor = anchor or now_local(self.timezone).date()
        return self.set_range(range_for_period(period, anchor))

    def set_range(self, date_range: DateRange) -> Dict[str, bool]:
        self.date_range = date_range
        return self.refresh()

    @log_operation("refresh_board")
    def refresh(self) -> Dict[str, bool]:
        """
        Refetch every read model for the current range.

        Returns:
            Mapping of read model name to whether its fetch succeeded
        """
        if self.date_range is None:
            logger.debug("Refresh skipped; no range selected", operation="refresh_board")
            return {}

        date_from, date_to = self.date_range.date_from, self.date_range.date_to
        outcome: Dict[str, bool] = {}

        sessions = self._read(SOURCE_SESSIONS, self.api_client.list_sessions, date_from, date_to)
        outcome[SOURCE_SESSIONS] = sessions is not None
        if sessions is not None:
            self.sessions = sessions

        trainers = self._read(SOURCE_TRAINERS, self.api_client.list_trainers)
        outcome[SOURCE_TRAINERS] = trainers is not None
        if trainers is not None:
            self.trainers = [t for t in trainers if t.active]

        availability = self._read(
            SOURCE_AVAILABILITY, self.api_client.get_availability, date_from, date_to
        )
        absence = self._read(SOURCE_ABSENCE, self.api_client.get_absence_dates, date_from, date_to)
        outcome[SOURCE_AVAILABILITY] = availability is not None
        outcome[SOURCE_ABSENCE] = absence is not None
        self._reindex(availability, absence)

        self.refresh_candidates()

        logger.info(
            "Board refreshed",
            operation="refresh_board",
            context={
                "date_from": date_from.isoformat(),
                "date_to": date_to.isoformat(),
                "sessions": len(self.sessions),
                "outcome": outcome,
            },
        )
        return outcome

    def refresh_candidates(self) -> None:
        """Fetch candidate trainers for every unassigned session; a failure empties only that list."""
        candidates: Dict[str, List[CandidateTrainer]] = {}
        for session in self.sessions:
            if session.has_trainer:
                continue
            try:
                candidates[session.id] = self.api_client.list_candidate_trainers(session.id)
            except ScheduleTransportError as e:
                logger.warning(
                    "Candidate trainers unavailable",
                    operation="fetch_candidate_trainers",
                    context={"session_id": session.id},
                    error=str(e),
                )
                candidates[session.id] = []
        self.candidates = candidates

    def _read(self, source: str, fetch, *args):
        try:
            result = fetch(*args)
        except ScheduleTransportError as e:
            self.notices.raise_notice(f"Could not load {source}: {e.message}", source=source)
            return None
        self.notices.clear(source)
        return result

    def _reindex(self, availability, absence) -> None:
        same_range = self._indexed_range == self.date_range
        slots = parse_availability_payload(availability) if availability is not None else None
        absences = parse_absence_payload(absence) if absence is not None else None
        self.index = self.index.with_halves(
            slots=slots,
            absences=absences,
            keep_slots=availability is None and same_range,
            keep_absences=absence is None and same_range,
        )
        self._indexed_range = self.date_range

    def _on_change(self) -> None:
        self.refresh()

    def _after_assignment(self, action: str) -> None:
        contexts = [BOOKINGS, TRAINER_SCHEDULES]
        if action == ACTION_ASSIGN:
            contexts.append(NOTIFICATIONS)
        self.dispatcher.invalidate(*contexts)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> Optional[Session]:
        for session in self.sessions:
            if session.id == str(session_id):
                return session
        return None

    @property
    def dates(self) -> List[date]:
        return list(self.date_range.dates) if self.date_range else []

    def assign_options(self, session_id: str) -> Tuple[List[CandidateTrainer], bool]:
        """
        Candidates offered for manual assignment.

        Returns:
            (candidates, loading); loading is True while an unassigned session's
            candidates have not been fetched yet
        """
        session = self.get_session(session_id)
        if session is None or session.has_trainer:
            return [], False
        if session.id not in self.candidates:
            return [], True
        return list(self.candidates[session.id]), False

    def _now(self, now: Optional[datetime]) -> datetime:
        return to_board_time(now, self.timezone) if now is not None else now_local(self.timezone)

    def statuses(self, now: Optional[datetime] = None) -> Dict[str, DisplayStatus]:
        return derive_statuses(self.sessions, self._now(now), self.timezone)

    def trainer_grid(self, now: Optional[datetime] = None) -> TrainerGrid:
        return build_trainer_grid(
            self.sessions,
            self.trainers,
            self.dates,
            index=self.index,
            statuses=self.statuses(now),
            max_per_cell=self.max_sessions_per_cell,
        )

    def day_timeline(self, day: date, now: Optional[datetime] = None) -> DayTimeline:
        return build_day_timeline(self.sessions, self.trainers, day, statuses=self.statuses(now))

    def day_grid(self, now: Optional[datetime] = None) -> List[DayColumn]:
        return build_day_grid(self.sessions, self.dates, statuses=self.statuses(now))

    def list_view(self, now: Optional[datetime] = None) -> List[PlacedSession]:
        in_range = [s for s in self.sessions if self.date_range is None or s.date in self.date_range]
        return build_list_view(in_range, statuses=self.statuses(now))

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def assign(self, session_id: str, trainer_id: str) -> AssignmentResult:
        return self.coordinator.assign(session_id, trainer_id)

    def unassign(self, session_id: str) -> AssignmentResult:
        return self.coordinator.unassign(session_id)

    def begin_drag(self, session_id: str) -> DragOperation:
        """
        Start dragging a session.

        Raises:
            AssignmentError: If the session is not on the board
            DragStateError: If the session is trainer-confirmed
        """
        session = self.get_session(session_id)
        if session is None:
            raise AssignmentError(f"Session {session_id} is not on the board")
        operation = DragOperation(self.coordinator)
        operation.begin(session)
        return operation
