"""
Live refresh dispatcher.

Maps change-notification tags to refetch callbacks. Whatever transport delivers
the tags (websocket, polling) calls deliver(); delivery is at-least-once, so
every subscriber must be an idempotent refetch.
"""

import threading
from typing import Callable, Dict, Iterable, List

from schedule_board.utils.logger import get_logger

logger = get_logger(__name__)

BOOKINGS = "bookings"
TRAINER_SCHEDULES = "trainer_schedules"
TRAINER_AVAILABILITY = "trainer_availability"
NOTIFICATIONS = "notifications"

KNOWN_CONTEXTS = (BOOKINGS, TRAINER_SCHEDULES, TRAINER_AVAILABILITY, NOTIFICATIONS)

RefreshCallback = Callable[[], object]


class LiveRefreshDispatcher:
    """Fan change tags out to subscribed refetch callbacks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[RefreshCallback]] = {ctx: [] for ctx in KNOWN_CONTEXTS}

    def subscribe(self, context: str, callback: RefreshCallback) -> Callable[[], None]:
        """
        Register a callback for a context tag.

        Returns:
            A function that removes the subscription

        Raises:
            ValueError: If the context tag is unknown
        """
        if context not in self._subscribers:
            raise ValueError(f"Unknown live refresh context: {context!r}")
        with self._lock:
            self._subscribers[context].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[context]:
                    self._subscribers[context].remove(callback)

        return unsubscribe

    def invalidate(self, *contexts: str) -> int:
        """Mark contexts stale locally, e.g. after a write. Same as deliver()."""
        return self.deliver(contexts)

    def deliver(self, contexts: Iterable[str]) -> int:
        """
        Handle one delivery of change tags.

        Duplicate tags are collapsed and a callback subscribed to several of the
        delivered tags runs once. Unknown tags are ignored with a warning.

        Returns:
            Number of callbacks that ran successfully
        """
        unique: List[str] = []
        for context in contexts:
            if context not in self._subscribers:
                logger.warning(
                    "Ignoring unknown live refresh context",
                    operation="live_refresh",
                    context={"context": context},
                )
                continue
            if context not in unique:
                unique.append(context)

        with self._lock:
            callbacks: List[RefreshCallback] = []
            for context in unique:
                for callback in self._subscribers[context]:
                    if callback not in callbacks:
                        callbacks.append(callback)

        return self._run(callbacks, unique)

    def refresh_all(self) -> int:
        """Run every subscriber once (manual refresh)."""
        return self.deliver(KNOWN_CONTEXTS)

    def _run(self, callbacks: List[RefreshCallback], contexts: List[str]) -> int:
        succeeded = 0
        for callback in callbacks:
            try:
                callback()
                succeeded += 1
            except Exception as e:
                logger.error(
                    "Live refresh subscriber failed",
                    operation="live_refresh",
                    context={
                        "contexts": contexts,
                        "callback": getattr(callback, "__qualname__", repr(callback)),
                    },
                    error=str(e),
                )
        return succeeded
