"""
Trainer availability index.

Keyed by (trainer_id, date), built once per fetched date range from the
availability slot feed and the absence feed. Instances are immutable; a range
refetch builds a new index and swaps it in.

Absence always outranks declared slots:

    approved_absence > pending_absence > available > unavailable > none
"""

from datetime import date, time
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from schedule_board.domain.trainer import AbsenceRequest, ApprovalState, AvailabilitySlot
from schedule_board.utils.clock import parse_date
from schedule_board.utils.logger import get_logger

logger = get_logger(__name__)

DayKey = Tuple[str, date]
SlotWindow = Tuple[time, time]


class DayStatus(Enum):
    """Per-trainer, per-day availability classification."""

    APPROVED_ABSENCE = "approved_absence"
    PENDING_ABSENCE = "pending_absence"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    NONE = "none"

    @property
    def is_absence(self) -> bool:
        return self in (DayStatus.APPROVED_ABSENCE, DayStatus.PENDING_ABSENCE)


class AvailabilityIndex:
    """
    Immutable lookup of trainer slots and absences.

    Either half may be unknown (its feed failed to load). An unknown half
    contributes nothing, so a fully unknown index answers DayStatus.NONE for
    every (trainer, date).
    """

    def __init__(
        self,
        slots: Optional[Iterable[AvailabilitySlot]] = None,
        absences: Optional[Iterable[AbsenceRequest]] = None,
    ):
        """
        Args:
            slots: Availability slots for the range, or None if the feed is unknown
            absences: Absence requests for the range, or None if the feed is unknown
        """
        self._availability_known = slots is not None
        self._absence_known = absences is not None

        available: Dict[DayKey, List[SlotWindow]] = {}
        declared: Dict[DayKey, bool] = {}
        for slot in slots or []:
            key = (str(slot.trainer_id), slot.date)
            declared[key] = declared.get(key, False) or slot.is_available
            if slot.is_available:
                available.setdefault(key, []).append((slot.start_time, slot.end_time))

        approved: set = set()
        pending: set = set()
        for absence in absences or []:
            target = approved if absence.approval_state is ApprovalState.APPROVED else pending
            for day in absence.days():
                target.add((str(absence.trainer_id), day))

        self._available_slots: Mapping[DayKey, Tuple[SlotWindow, ...]] = MappingProxyType(
            {key: tuple(sorted(windows)) for key, windows in available.items()}
        )
        self._declared: Mapping[DayKey, bool] = MappingProxyType(declared)
        self._approved = frozenset(approved)
        self._pending = frozenset(pending - approved)

    @classmethod
    def empty(cls) -> "AvailabilityIndex":
        """Index with both halves unknown."""
        return cls(slots=None, absences=None)

    @classmethod
    def from_payloads(
        cls,
        availability: Optional[Dict[str, Any]],
        absence: Optional[Dict[str, Any]],
    ) -> "AvailabilityIndex":
        """
        Build an index from the raw availability and absence-date payloads.

        Either argument may be None when the corresponding read failed.
        Malformed entries are skipped with a warning.

        Example:
            >>> AvailabilityIndex.from_payloads(
            ...     {"trainers": [{"id": "T3", "slots": [
            ...         {"date": "2024-06-12", "startTime": "09:00",
            ...          "endTime": "12:00", "isAvailable": True}]}]},
            ...     {"trainers": [{"id": "T2", "approved_dates": ["2024-06-12"]}]},
            ... ).day_status("T2", date(2024, 6, 12))
            <DayStatus.APPROVED_ABSENCE: 'approved_absence'>
        """
        slots = parse_availability_payload(availability) if availability is not None else None
        absences = parse_absence_payload(absence) if absence is not None else None
        return cls(slots=slots, absences=absences)

    @property
    def availability_known(self) -> bool:
        return self._availability_known

    @property
    def absence_known(self) -> bool:
        return self._absence_known

    def slots_for(self, trainer_id: str, day: date) -> List[SlotWindow]:
        """Available (start, end) windows for a trainer on a day, sorted by start."""
        return list(self._available_slots.get((str(trainer_id), day), ()))

    def day_status(self, trainer_id: str, day: date) -> DayStatus:
        key = (str(trainer_id), day)
        if key in self._approved:
            return DayStatus.APPROVED_ABSENCE
        if key in self._pending:
            return DayStatus.PENDING_ABSENCE
        if key in self._declared:
            return DayStatus.AVAILABLE if self._declared[key] else DayStatus.UNAVAILABLE
        return DayStatus.NONE

    def with_halves(
        self,
        slots: Optional[Iterable[AvailabilitySlot]] = None,
        absences: Optional[Iterable[AbsenceRequest]] = None,
        keep_slots: bool = False,
        keep_absences: bool = False,
    ) -> "AvailabilityIndex":
        """
        Build a replacement index, optionally carrying a half over from this one.

        Used when one feed refreshed and the other failed for an unchanged range.
        """
        if keep_slots:
            slots = self._slot_records() if self._availability_known else None
        if keep_absences:
            absences = self._absence_records() if self._absence_known else None
        return AvailabilityIndex(slots=slots, absences=absences)

    def _slot_records(self) -> List[AvailabilitySlot]:
        records = []
        for (trainer_id, day), is_available in self._declared.items():
            windows = self._available_slots.get((trainer_id, day), ())
            if windows:
                records.extend(
                    AvailabilitySlot(trainer_id, day, start, end, True) for start, end in windows
                )
            elif not is_available:
                records.append(AvailabilitySlot(trainer_id, day, time(0, 0), time(0, 0), False))
        return records

    def _absence_records(self) -> List[AbsenceRequest]:
        records = [
            AbsenceRequest(trainer_id, day, day, ApprovalState.APPROVED)
            for trainer_id, day in self._approved
        ]
        records.extend(
            AbsenceRequest(trainer_id, day, day, ApprovalState.PENDING)
            for trainer_id, day in self._pending
        )
        return records

    def __repr__(self) -> str:
        return (
            f"AvailabilityIndex(slot_days={len(self._declared)}, "
            f"absence_days={len(self._approved) + len(self._pending)}, "
            f"availability_known={self._availability_known}, "
            f"absence_known={self._absence_known})"
        )


def parse_availability_payload(payload: Dict[str, Any]) -> List[AvailabilitySlot]:
    """Flatten {"trainers": [{"id", "slots": [...]}]} into AvailabilitySlot records."""
    slots: List[AvailabilitySlot] = []
    for trainer in payload.get("trainers") or []:
        trainer_id = trainer.get("id")
        if trainer_id in (None, ""):
            logger.warning(
                "Skipping availability entry without trainer id",
                operation="index_availability",
            )
            continue
        for raw_slot in trainer.get("slots") or []:
            try:
                slots.append(AvailabilitySlot.from_dict(str(trainer_id), raw_slot))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(
                    "Skipping malformed availability slot",
                    operation="index_availability",
                    context={"trainer_id": str(trainer_id)},
                    error=str(e),
                )
    return slots


def parse_absence_payload(payload: Dict[str, Any]) -> List[AbsenceRequest]:
    """
    Expand the absence-date feed into single-day AbsenceRequest records.

    Accepts both the per-day lists ("approved_dates" / "pending_dates") and
    range entries ("absences": [{"date_from", "date_to", "status"}]).
    """
    absences: List[AbsenceRequest] = []
    for trainer in payload.get("trainers") or []:
        trainer_id = trainer.get("id")
        if trainer_id in (None, ""):
            logger.warning(
                "Skipping absence entry without trainer id",
                operation="index_absences",
            )
            continue
        trainer_id = str(trainer_id)

        for field_name, state in (
            ("approved_dates", ApprovalState.APPROVED),
            ("pending_dates", ApprovalState.PENDING),
        ):
            for raw_day in trainer.get(field_name) or []:
                day = parse_date(raw_day)
                if day is None:
                    logger.warning(
                        "Skipping malformed absence date",
                        operation="index_absences",
                        context={"trainer_id": trainer_id, "value": str(raw_day)},
                    )
                    continue
                absences.append(AbsenceRequest(trainer_id, day, day, state))

        for entry in trainer.get("absences") or []:
            date_from = parse_date(entry.get("date_from", entry.get("dateFrom")))
            date_to = parse_date(entry.get("date_to", entry.get("dateTo"))) or date_from
            if date_from is None or date_to < date_from:
                logger.warning(
                    "Skipping malformed absence range",
                    operation="index_absences",
                    context={"trainer_id": trainer_id},
                )
                continue
            state = (
                ApprovalState.APPROVED
                if str(entry.get("status", "")).lower() == "approved"
                else ApprovalState.PENDING
            )
            absences.append(AbsenceRequest(trainer_id, date_from, date_to, state))

    return absences
