"""Change notifications and operator notices."""

from .live_refresh import KNOWN_CONTEXTS, LiveRefreshDispatcher
from .notices import Notice, NoticeBoard

__all__ = ["KNOWN_CONTEXTS", "LiveRefreshDispatcher", "Notice", "NoticeBoard"]
