"""
Assignment conflict validation.

Ordered rules, first match wins:

1. unassign                       -> allowed
2. trainer has confirmed          -> rejected (confirmed)
3. target date != session date    -> rejected (cross_date)
4. approved or pending absence    -> rejected (absence)
5. day marked available           -> allowed
6. at least one overlapping slot  -> allowed, otherwise rejected (no_slot, or
                                     availability_unknown when the feed failed)

Rule 5 is advisory: the write API re-validates and its answer is final.
Every evaluation is synchronous and side-effect free apart from debug logging.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Callable, Iterable, List, Optional, Tuple

from schedule_board.domain.session import Session
from schedule_board.scheduling.availability import AvailabilityIndex, DayStatus

logger = logging.getLogger(__name__)

REASON_CONFIRMED = "Trainer has confirmed; cannot reassign"
REASON_CROSS_DATE = "Sessions can only be moved between trainers on the same day"
REASON_ABSENCE = "Trainer unavailable: absence"
REASON_NO_SLOT = "Trainer not available for this time"
REASON_AVAILABILITY_UNKNOWN = "Trainer availability could not be loaded"


@dataclass(frozen=True)
class Decision:
    """
    Outcome of a conflict check.

    Attributes:
        allowed: Whether the move may proceed to the write API
        reason: Human-readable rejection reason
        code: Machine-readable rejection code (confirmed, cross_date, absence,
            no_slot, availability_unknown)
    """

    allowed: bool
    reason: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def reject(cls, code: str, reason: str) -> "Decision":
        return cls(allowed=False, reason=reason, code=code)


def overlaps(start: time, end: time, slot_start: time, slot_end: time) -> bool:
    """Half-open overlap: touching windows (10:00-11:00 vs 11:00-12:00) do not overlap."""
    return slot_start < end and slot_end > start


def overlaps_any(start: time, end: time, slots: Iterable[Tuple[time, time]]) -> bool:
    """True when [start, end) overlaps at least one (slot_start, slot_end) window."""
    return any(overlaps(start, end, slot_start, slot_end) for slot_start, slot_end in slots)


# Each rule returns a Decision when it decides, or None to defer to the next rule.
Rule = Callable[[Session, Optional[str], date, AvailabilityIndex], Optional[Decision]]


def unassign_rule(session, target_trainer_id, target_date, index):
    if target_trainer_id is None:
        return Decision.allow()
    return None


def confirmed_rule(session, target_trainer_id, target_date, index):
    if session.is_trainer_confirmed:
        return Decision.reject("confirmed", REASON_CONFIRMED)
    return None


def same_date_rule(session, target_trainer_id, target_date, index):
    if target_date != session.date:
        return Decision.reject("cross_date", REASON_CROSS_DATE)
    return None


def absence_rule(session, target_trainer_id, target_date, index):
    if index.day_status(target_trainer_id, target_date).is_absence:
        return Decision.reject("absence", REASON_ABSENCE)
    return None


def available_day_rule(session, target_trainer_id, target_date, index):
    if index.day_status(target_trainer_id, target_date) is DayStatus.AVAILABLE:
        return Decision.allow()
    return None


def slot_overlap_rule(session, target_trainer_id, target_date, index):
    slots = index.slots_for(target_trainer_id, target_date)
    if overlaps_any(session.start_time, session.end_time, slots):
        return Decision.allow()
    if not index.availability_known:
        return Decision.reject("availability_unknown", REASON_AVAILABILITY_UNKNOWN)
    return Decision.reject("no_slot", REASON_NO_SLOT)


DEFAULT_RULES: List[Rule] = [
    unassign_rule,
    confirmed_rule,
    same_date_rule,
    absence_rule,
    available_day_rule,
    slot_overlap_rule,
]


class ConflictValidator:
    """
    Gate in front of every assignment write.

    Reads the availability index through a provider so that a refetch, which
    swaps the index, is picked up without rebuilding the validator.
    """

    def __init__(
        self,
        index_provider: Callable[[], AvailabilityIndex],
        rules: Optional[List[Rule]] = None,
    ):
        self._index_provider = index_provider
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    @classmethod
    def for_index(cls, index: AvailabilityIndex) -> "ConflictValidator":
        """Validator bound to one fixed index snapshot."""
        return cls(lambda: index)

    def can_assign(
        self,
        session: Session,
        target_trainer_id: Optional[str],
        target_date: date,
    ) -> Decision:
        """
        Decide whether a session may be moved to a trainer on a date.

        Args:
            session: Session being moved
            target_trainer_id: Destination trainer, or None to unassign
            target_date: Date of the destination cell

        Returns:
            Decision (allowed, reason, code)

        Example:
            >>> validator.can_assign(session_on_12th, "T2", date(2024, 6, 12))
            Decision(allowed=False, reason='Trainer unavailable: absence', code='absence')
        """
        index = self._index_provider()
        trainer_id = str(target_trainer_id) if target_trainer_id is not None else None

        for rule in self.rules:
            decision = rule(session, trainer_id, target_date, index)
            if decision is not None:
                logger.debug(
                    f"can_assign: session={session.id}, trainer={trainer_id}, "
                    f"date={target_date}, rule={rule.__name__}, allowed={decision.allowed}, "
                    f"code={decision.code}"
                )
                return decision

        # Only reachable with a custom rule list; undecided moves pass through to the server
        logger.debug(f"can_assign: session={session.id}, no rule matched, allowing")
        return Decision.allow()
