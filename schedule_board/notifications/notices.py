"""
Dismissible board notices.

Transport failures are reported to the operator as notices rather than
exceptions; the affected view keeps its previous data until the next refresh.
"""

import itertools
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from schedule_board.utils.logger import get_logger

logger = get_logger(__name__)

LEVEL_ERROR = "error"
LEVEL_WARNING = "warning"
LEVEL_INFO = "info"


@dataclass(frozen=True)
class Notice:
    id: int
    message: str
    source: str
    level: str = LEVEL_ERROR
    raised_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)


class NoticeBoard:
    """Active notices, oldest first. Identical active notices are not stacked."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._notices: Dict[int, Notice] = {}

    def raise_notice(self, message: str, source: str, level: str = LEVEL_ERROR) -> Notice:
        """
        Show a notice.

        Args:
            message: Operator-facing message
            source: Area that raised it, e.g. "sessions" or "assignment"
            level: "error", "warning" or "info"

        Returns:
            The new notice, or the already active one with the same source and message
        """
        with self._lock:
            for notice in self._notices.values():
                if notice.source == source and notice.message == message:
                    return notice
            notice = Notice(id=next(self._ids), message=message, source=source, level=level)
            self._notices[notice.id] = notice

        logger.info(
            "Notice raised",
            operation="raise_notice",
            context={"notice_id": notice.id, "source": source, "level": level},
        )
        return notice

    def dismiss(self, notice_id: int) -> bool:
        """Remove a notice. Returns False if it was not active."""
        with self._lock:
            return self._notices.pop(notice_id, None) is not None

    def active(self, source: Optional[str] = None) -> List[Notice]:
        with self._lock:
            notices = list(self._notices.values())
        if source is not None:
            notices = [n for n in notices if n.source == source]
        return sorted(notices, key=lambda n: n.id)

    def clear(self, source: Optional[str] = None) -> int:
        """Dismiss all notices, or all from one source. Returns how many were removed."""
        with self._lock:
            if source is None:
                removed = len(self._notices)
                self._notices.clear()
                return removed
            doomed = [nid for nid, n in self._notices.items() if n.source == source]
            for nid in doomed:
                del self._notices[nid]
            return len(doomed)
