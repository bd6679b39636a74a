"""
Booking domain model.

A booking is a parent's purchased package instance. The board only uses it as
display context for its sessions and as the unit the bookings API returns.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from schedule_board.domain.session import Session
from schedule_board.utils.logger import get_logger

logger = get_logger(__name__)

NO_CHILDREN_SUMMARY = "No children"


@dataclass
class Booking:
    """
    Booking with its nested sessions.

    Attributes:
        id: Booking identifier
        reference: Human-facing booking reference
        parent_name: Name of the booking parent
        children: Names of the children on the booking
        package_name: Purchased package, if any
        sessions: Sessions belonging to this booking
    """

    id: str
    reference: str = ""
    parent_name: str = ""
    children: List[str] = field(default_factory=list)
    package_name: Optional[str] = None
    sessions: List[Session] = field(default_factory=list)

    @property
    def children_summary(self) -> str:
        return ", ".join(self.children) if self.children else NO_CHILDREN_SUMMARY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Booking":
        """
        Create Booking from an API payload.

        Sessions lacking a date, start time or end time cannot be placed on the
        board and are skipped.
        """
        booking_id = str(data["id"])
        children = [
            child.get("name", "") if isinstance(child, dict) else str(child)
            for child in (data.get("children") or [])
        ]
        booking = cls(
            id=booking_id,
            reference=data.get("reference", "") or "",
            parent_name=data.get("parentName", "") or "",
            children=[name for name in children if name],
            package_name=data.get("packageName"),
        )

        booking_context = {
            "booking_id": booking_id,
            "reference": booking.reference,
            "parent_name": booking.parent_name,
            "children_summary": booking.children_summary,
            "package_name": booking.package_name,
        }

        for session_data in data.get("sessions") or []:
            try:
                booking.sessions.append(Session.from_dict(session_data, booking_context))
            except ValueError as e:
                logger.debug(
                    "Skipping session without a placeable time window",
                    operation="parse_booking",
                    context={
                        "booking_id": booking_id,
                        "parent_name": booking.parent_name,
                        "children": booking.children,
                    },
                    error=str(e),
                )

        return booking


def flatten_sessions(bookings: List[Booking]) -> List[Session]:
    """All sessions of all bookings, in booking order."""
    sessions: List[Session] = []
    for booking in bookings:
        sessions.extend(booking.sessions)
    return sessions
