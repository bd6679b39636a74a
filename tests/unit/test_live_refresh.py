"""
Unit tests for LiveRefreshDispatcher and NoticeBoard
(schedule_board/notifications/live_refresh.py, schedule_board/notifications/notices.py)
"""

from unittest.mock import Mock

import pytest

from schedule_board.notifications.live_refresh import (
    BOOKINGS,
    TRAINER_AVAILABILITY,
    TRAINER_SCHEDULES,
    LiveRefreshDispatcher,
)
from schedule_board.notifications.notices import NoticeBoard


class TestLiveRefreshDispatcher:
    def test_deliver_runs_subscribers(self):
        dispatcher = LiveRefreshDispatcher()
        callback = Mock()
        dispatcher.subscribe(BOOKINGS, callback)

        assert dispatcher.deliver([BOOKINGS]) == 1
        callback.assert_called_once_with()

    def test_duplicate_tags_trigger_one_refetch(self):
        """Test: At-least-once delivery with repeated tags refetches once"""
        dispatcher = LiveRefreshDispatcher()
        callback = Mock()
        dispatcher.subscribe(BOOKINGS, callback)
        dispatcher.subscribe(TRAINER_SCHEDULES, callback)

        dispatcher.deliver([BOOKINGS, BOOKINGS, TRAINER_SCHEDULES])
        assert callback.call_count == 1

    def test_unknown_tags_ignored(self):
        dispatcher = LiveRefreshDispatcher()
        callback = Mock()
        dispatcher.subscribe(TRAINER_AVAILABILITY, callback)

        assert dispatcher.deliver(["payments", TRAINER_AVAILABILITY]) == 1

    def test_unknown_subscription_rejected(self):
        with pytest.raises(ValueError):
            LiveRefreshDispatcher().subscribe("payments", Mock())

    def test_failing_subscriber_does_not_stop_others(self):
        dispatcher = LiveRefreshDispatcher()
        broken = Mock(side_effect=RuntimeError("boom"))
        healthy = Mock()
        dispatcher.subscribe(BOOKINGS, broken)
        dispatcher.subscribe(BOOKINGS, healthy)

        assert dispatcher.invalidate(BOOKINGS) == 1
        healthy.assert_called_once()

    def test_unsubscribe(self):
        dispatcher = LiveRefreshDispatcher()
        callback = Mock()
        unsubscribe = dispatcher.subscribe(BOOKINGS, callback)
        unsubscribe()
        unsubscribe()

        dispatcher.refresh_all()
        callback.assert_not_called()


class TestNoticeBoard:
    def test_raise_and_dismiss(self):
        board = NoticeBoard()
        notice = board.raise_notice("Could not load sessions", source="sessions")

        assert board.active() == [notice]
        assert board.dismiss(notice.id) is True
        assert board.dismiss(notice.id) is False
        assert board.active() == []

    def test_identical_notice_not_stacked(self):
        board = NoticeBoard()
        first = board.raise_notice("Could not load sessions", source="sessions")
        second = board.raise_notice("Could not load sessions", source="sessions")

        assert first is second
        assert len(board.active()) == 1

    def test_same_message_different_source(self):
        board = NoticeBoard()
        board.raise_notice("Request failed", source="sessions")
        board.raise_notice("Request failed", source="trainers")
        assert len(board.active()) == 2

    def test_clear_by_source(self):
        board = NoticeBoard()
        board.raise_notice("a", source="sessions")
        board.raise_notice("b", source="sessions")
        board.raise_notice("c", source="absence", level="warning")

        assert board.clear("sessions") == 2
        assert [n.message for n in board.active()] == ["c"]
        assert board.clear() == 1

    def test_active_filtered_by_source(self):
        board = NoticeBoard()
        board.raise_notice("a", source="sessions")
        board.raise_notice("b", source="assignment")
        assert [n.source for n in board.active("assignment")] == ["assignment"]
