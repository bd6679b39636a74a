"""Shared fixtures for schedule board tests."""

from datetime import date, datetime, time

import pytest

from schedule_board.domain.session import Session, SessionStatus, TrainerAssignmentStatus


def build_session(
    session_id="S1",
    day=date(2024, 6, 10),
    start=time(9, 0),
    end=time(11, 0),
    trainer_id=None,
    status=SessionStatus.SCHEDULED,
    assignment=TrainerAssignmentStatus.NONE,
    clocked_in_at=None,
    clocked_out_at=None,
    completed_at=None,
    trainer_name=None,
):
    return Session(
        id=session_id,
        booking_id="B1",
        date=day,
        start_time=start,
        end_time=end,
        trainer_id=trainer_id,
        status=status,
        trainer_assignment_status=assignment,
        clocked_in_at=clocked_in_at,
        clocked_out_at=clocked_out_at,
        completed_at=completed_at,
        trainer_name=trainer_name,
    )


@pytest.fixture
def make_session():
    """Factory for Session snapshots with sensible defaults."""
    return build_session


@pytest.fixture
def june_10_at_10():
    return datetime(2024, 6, 10, 10, 0)
