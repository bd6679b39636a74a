"""
Grid layout engine.

Pure functions that arrange a session snapshot into the board's views:

- trainer grid: one row per trainer lane, one column per date
- day timeline: sessions positioned as percentages of a 24h axis
- day grid: per-date columns with sessions spanning whole-hour rows
- list view: flat chronological list

Every laid-out session is paired with its display status, computed for all
sessions at the same instant.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from schedule_board.domain.session import Session
from schedule_board.domain.trainer import Trainer
from schedule_board.scheduling.availability import AvailabilityIndex, DayStatus
from schedule_board.scheduling.status import DISPLAY_LABELS, DisplayStatus, derive_statuses
from schedule_board.utils.clock import hour_span, time_to_hours

MAX_SESSIONS_PER_CELL = 5
UNASSIGNED_LANE = ""
UNASSIGNED_LANE_NAME = "Unassigned"


@dataclass(frozen=True)
class PlacedSession:
    """A session together with its display status."""

    session: Session
    status: DisplayStatus

    @property
    def label(self) -> str:
        return DISPLAY_LABELS[self.status]


@dataclass(frozen=True)
class TrainerRow:
    """A grid row. The unassigned lane has id ""."""

    trainer_id: str
    name: str
    in_roster: bool = True

    @property
    def is_unassigned_lane(self) -> bool:
        return self.trainer_id == UNASSIGNED_LANE


@dataclass
class GridCell:
    """
    One (trainer lane, date) cell of the trainer grid.

    visible and overflow together hold every session of the cell, in
    (start, end) order. day_status is None for the unassigned lane.
    """

    trainer_id: str
    date: date
    visible: List[PlacedSession] = field(default_factory=list)
    overflow: List[PlacedSession] = field(default_factory=list)
    day_status: Optional[DayStatus] = None
    availability_known: bool = True
    slots: List[Tuple[time, time]] = field(default_factory=list)

    @property
    def sessions(self) -> List[PlacedSession]:
        return self.visible + self.overflow

    @property
    def overflow_count(self) -> int:
        return len(self.overflow)


@dataclass
class TrainerGrid:
    dates: List[date]
    rows: List[TrainerRow]
    cells: Dict[Tuple[str, date], GridCell]

    def cell(self, trainer_id: Optional[str], day: date) -> GridCell:
        return self.cells[(trainer_id or UNASSIGNED_LANE, day)]

    def row_cells(self, trainer_id: Optional[str]) -> List[GridCell]:
        return [self.cell(trainer_id, day) for day in self.dates]


@dataclass(frozen=True)
class TimelineBlock:
    """A session positioned on a 24-hour axis, in percent."""

    placed: PlacedSession
    start_hours: float
    end_hours: float
    left_pct: float
    width_pct: float


@dataclass
class DayTimeline:
    date: date
    rows: List[TrainerRow]
    lanes: Dict[str, List[TimelineBlock]]

    def blocks_for(self, trainer_id: Optional[str]) -> List[TimelineBlock]:
        return self.lanes.get(trainer_id or UNASSIGNED_LANE, [])


@dataclass(frozen=True)
class DayGridEntry:
    """A session spanning hour rows [start_hour, end_hour)."""

    placed: PlacedSession
    start_hour: int
    end_hour: int

    @property
    def hours(self) -> range:
        return range(self.start_hour, self.end_hour)


@dataclass
class DayColumn:
    date: date
    entries: List[DayGridEntry]


def _by_time(session: Session) -> Tuple[time, time]:
    return session.start_time, session.end_time


def _resolve_statuses(
    sessions: Sequence[Session],
    statuses: Optional[Dict[str, DisplayStatus]],
    now: Optional[datetime],
) -> Dict[str, DisplayStatus]:
    if statuses is not None:
        missing = [s for s in sessions if s.id not in statuses]
        if not missing:
            return statuses
        merged = dict(statuses)
        merged.update(derive_statuses(missing, now))
        return merged
    return derive_statuses(sessions, now)


def build_trainer_rows(trainers: Iterable[Trainer], sessions: Iterable[Session]) -> List[TrainerRow]:
    """
    Row order: unassigned lane, roster trainers in roster order, then trainers
    seen only on sessions (named from the session, sorted by name).
    """
    rows = [TrainerRow(UNASSIGNED_LANE, UNASSIGNED_LANE_NAME)]
    seen = {UNASSIGNED_LANE}

    for trainer in trainers:
        if trainer.id in seen:
            continue
        rows.append(TrainerRow(trainer.id, trainer.name))
        seen.add(trainer.id)

    extra: Dict[str, str] = {}
    for session in sessions:
        if session.trainer_id and session.trainer_id not in seen:
            if not extra.get(session.trainer_id):
                extra[session.trainer_id] = session.trainer_name or ""

    named = [(trainer_id, name or trainer_id) for trainer_id, name in extra.items()]
    for trainer_id, name in sorted(named, key=lambda item: (item[1].lower(), item[0])):
        rows.append(TrainerRow(trainer_id, name, in_roster=False))

    return rows


def build_trainer_grid(
    sessions: Sequence[Session],
    trainers: Iterable[Trainer],
    dates: Sequence[date],
    index: Optional[AvailabilityIndex] = None,
    statuses: Optional[Dict[str, DisplayStatus]] = None,
    now: Optional[datetime] = None,
    max_per_cell: int = MAX_SESSIONS_PER_CELL,
) -> TrainerGrid:
    """
    Lay sessions out by trainer lane and date.

    Each cell holds at most max_per_cell visible sessions; the rest go to
    overflow in the same (start, end) order. Sessions dated outside the range
    are left out.

    Args:
        sessions: Session snapshot for the range
        trainers: Roster, in display order
        dates: Dates of the range, in order
        index: Availability index; None or unknown halves mark cells as unknown
        statuses: Precomputed display statuses keyed by session id
        now: Evaluation instant when statuses are not supplied
        max_per_cell: Visible sessions per cell before overflow
    """
    index = index or AvailabilityIndex.empty()
    dates = list(dates)
    statuses = _resolve_statuses(sessions, statuses, now)
    rows = build_trainer_rows(trainers, sessions)

    cells: Dict[Tuple[str, date], GridCell] = {}
    for row in rows:
        for day in dates:
            if row.is_unassigned_lane:
                cells[(row.trainer_id, day)] = GridCell(row.trainer_id, day)
            else:
                cells[(row.trainer_id, day)] = GridCell(
                    trainer_id=row.trainer_id,
                    date=day,
                    day_status=index.day_status(row.trainer_id, day),
                    availability_known=index.availability_known,
                    slots=index.slots_for(row.trainer_id, day),
                )

    grouped: Dict[Tuple[str, date], List[Session]] = defaultdict(list)
    for session in sessions:
        key = (session.lane_id, session.date)
        if key in cells:
            grouped[key].append(session)

    for key, cell_sessions in grouped.items():
        placed = [PlacedSession(s, statuses[s.id]) for s in sorted(cell_sessions, key=_by_time)]
        cells[key].visible = placed[:max_per_cell]
        cells[key].overflow = placed[max_per_cell:]

    return TrainerGrid(dates=dates, rows=rows, cells=cells)


def position_on_day(start: time, end: time) -> Tuple[float, float]:
    """(left_pct, width_pct) of a window on a 24-hour axis."""
    start_hours = time_to_hours(start)
    end_hours = time_to_hours(end)
    left_pct = start_hours / 24 * 100
    width_pct = max(end_hours - start_hours, 0) / 24 * 100
    return left_pct, width_pct


def build_day_timeline(
    sessions: Sequence[Session],
    trainers: Iterable[Trainer],
    day: date,
    statuses: Optional[Dict[str, DisplayStatus]] = None,
    now: Optional[datetime] = None,
) -> DayTimeline:
    """
    Position one day's sessions on a 24h axis, one lane per trainer row.

    Overlapping sessions in a lane are not de-overlapped.
    """
    day_sessions = [s for s in sessions if s.date == day]
    statuses = _resolve_statuses(day_sessions, statuses, now)
    rows = build_trainer_rows(trainers, day_sessions)

    lanes: Dict[str, List[TimelineBlock]] = {row.trainer_id: [] for row in rows}
    for session in sorted(day_sessions, key=_by_time):
        left_pct, width_pct = position_on_day(session.start_time, session.end_time)
        lanes[session.lane_id].append(
            TimelineBlock(
                placed=PlacedSession(session, statuses[session.id]),
                start_hours=time_to_hours(session.start_time),
                end_hours=time_to_hours(session.end_time),
                left_pct=left_pct,
                width_pct=width_pct,
            )
        )

    return DayTimeline(date=day, rows=rows, lanes=lanes)


def build_day_grid(
    sessions: Sequence[Session],
    dates: Sequence[date],
    statuses: Optional[Dict[str, DisplayStatus]] = None,
    now: Optional[datetime] = None,
) -> List[DayColumn]:
    """Per-date columns; each session spans hour rows floor(start) to ceil(end), end exclusive."""
    statuses = _resolve_statuses(sessions, statuses, now)
    by_date: Dict[date, List[Session]] = defaultdict(list)
    for session in sessions:
        by_date[session.date].append(session)

    columns = []
    for day in dates:
        entries = []
        for session in sorted(by_date.get(day, []), key=_by_time):
            start_hour, end_hour = hour_span(session.start_time, session.end_time)
            entries.append(
                DayGridEntry(
                    placed=PlacedSession(session, statuses[session.id]),
                    start_hour=start_hour,
                    end_hour=end_hour,
                )
            )
        columns.append(DayColumn(date=day, entries=entries))
    return columns


def build_list_view(
    sessions: Sequence[Session],
    statuses: Optional[Dict[str, DisplayStatus]] = None,
    now: Optional[datetime] = None,
) -> List[PlacedSession]:
    """All sessions ordered by (date, start)."""
    statuses = _resolve_statuses(sessions, statuses, now)
    ordered = sorted(sessions, key=lambda s: (s.date, s.start_time))
    return [PlacedSession(s, statuses[s.id]) for s in ordered]
