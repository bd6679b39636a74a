"""
Unit tests for ScheduleAPIClient (schedule_board/api/schedule_api.py)

Ensures request parameters, envelope unwrapping, range clamping and the
mapping of HTTP failures onto the transport error hierarchy.
"""

from datetime import date
from unittest.mock import Mock

import pytest
import requests

from schedule_board.api.schedule_api import (
    ScheduleAPIClient,
    ScheduleApiError,
    ScheduleAuthenticationError,
    ScheduleTransportError,
    ScheduleValidationError,
)

BASE_URL = "https://api.example.test/api/v1"


def _mock_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    return response


def _envelope(data, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return body


def _booking_payload():
    return [
        {
            "id": 501,
            "reference": "BK-501",
            "parentName": "Jane Doe",
            "children": [{"name": "Sam"}, {"name": "Alex"}],
            "packageName": "Holiday Club",
            "sessions": [
                {
                    "id": 9001,
                    "date": "2024-06-12",
                    "startTime": "14:00",
                    "endTime": "16:00",
                    "status": "scheduled",
                    "trainerId": None,
                },
                {
                    "id": 9002,
                    "date": "2024-07-30",
                    "startTime": "09:00",
                    "endTime": "10:00",
                    "trainerId": 7,
                    "trainerName": "Taylor",
                    "trainerAssignmentStatus": "trainer_confirmed",
                },
                {"id": 9003, "date": None, "startTime": "09:00", "endTime": "10:00"},
            ],
        }
    ]


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return ScheduleAPIClient(BASE_URL, token="tok-123", session=session, timeout=5)


class TestReads:
    def test_list_bookings_params_and_parsing(self, client, session):
        session.request.return_value = _mock_response(_envelope(_booking_payload()))

        bookings = client.list_bookings(date(2024, 6, 10), date(2024, 6, 16))

        call = session.request.call_args
        assert call.args == ("GET", f"{BASE_URL}/admin/bookings")
        assert call.kwargs["params"] == {
            "status": "confirmed",
            "session_date_from": "2024-06-10",
            "session_date_to": "2024-06-16",
            "limit": 1000,
        }
        assert call.kwargs["headers"]["Authorization"] == "Bearer tok-123"
        assert call.kwargs["timeout"] == 5

        assert len(bookings) == 1
        booking = bookings[0]
        assert booking.children_summary == "Sam, Alex"
        assert [s.id for s in booking.sessions] == ["9001", "9002"]
        assert booking.sessions[0].booking_reference == "BK-501"
        assert booking.sessions[1].trainer_id == "7"
        assert booking.sessions[1].is_trainer_confirmed

    def test_list_sessions_filters_to_range(self, client, session):
        session.request.return_value = _mock_response(_envelope(_booking_payload()))
        sessions = client.list_sessions(date(2024, 6, 10), date(2024, 6, 16))
        assert [s.id for s in sessions] == ["9001"]

    def test_no_token_no_auth_header(self, session):
        session.request.return_value = _mock_response(_envelope([]))
        ScheduleAPIClient(BASE_URL, session=session).list_trainers()
        assert "Authorization" not in session.request.call_args.kwargs["headers"]

    def test_list_trainers_accepts_wrapped_list(self, client, session):
        session.request.return_value = _mock_response(
            _envelope({"trainers": [{"id": 1, "name": "Ann", "isActive": False}, {"name": "no id"}]})
        )
        trainers = client.list_trainers()
        assert [(t.id, t.name, t.active) for t in trainers] == [("1", "Ann", False)]

    def test_availability_and_absence_paths(self, client, session):
        session.request.side_effect = [
            _mock_response(_envelope({"trainers": []})),
            _mock_response(_envelope({"trainers": [{"id": "T2", "approved_dates": ["2024-06-12"]}]})),
        ]

        availability = client.get_availability(date(2024, 6, 10), date(2024, 6, 16))
        absence = client.get_absence_dates(date(2024, 6, 10), date(2024, 6, 16))

        first, second = session.request.call_args_list
        assert first.args[1].endswith("/admin/trainers/availability")
        assert first.kwargs["params"] == {"date_from": "2024-06-10", "date_to": "2024-06-16"}
        assert second.args[1].endswith("/admin/trainers/absence-dates")
        assert availability == {"trainers": []}
        assert absence["trainers"][0]["approved_dates"] == ["2024-06-12"]

    def test_candidate_trainers(self, client, session):
        session.request.return_value = _mock_response(
            _envelope({"trainers": [{"id": 3, "name": "Cara", "score": 0.9}]})
        )
        candidates = client.list_candidate_trainers("9001")
        assert session.request.call_args.args[1].endswith(
            "/admin/bookings/sessions/9001/available-trainers"
        )
        assert candidates[0].id == "3"
        assert candidates[0].score == pytest.approx(0.9)


class TestDateRangeClamp:
    def test_range_clamped_to_93_days(self, client, session):
        session.request.return_value = _mock_response(_envelope([]))
        client.get_availability(date(2024, 1, 1), date(2024, 12, 31))
        assert session.request.call_args.kwargs["params"]["date_to"] == "2024-04-02"

    def test_reversed_range_normalized(self, client):
        start, end, adjusted = client._enforce_max_date_range(
            date(2024, 6, 16), date(2024, 6, 10), "test"
        )
        assert (start, end, adjusted) == (date(2024, 6, 16), date(2024, 6, 16), True)

    def test_range_within_limit_unchanged(self, client):
        _, _, adjusted = client._enforce_max_date_range(date(2024, 6, 1), date(2024, 6, 30), "test")
        assert adjusted is False


class TestWrites:
    def test_set_session_trainer_body(self, client, session):
        session.request.return_value = _mock_response(_envelope({"id": 9001}))
        client.set_session_trainer("9001", "T4")

        call = session.request.call_args
        assert call.args == ("PUT", f"{BASE_URL}/admin/bookings/sessions/9001/trainer")
        assert call.kwargs["json"] == {"trainer_id": "T4"}

    def test_clear_trainer_sends_null(self, client, session):
        session.request.return_value = _mock_response(_envelope(None))
        client.set_session_trainer("9001", None)
        assert session.request.call_args.kwargs["json"] == {"trainer_id": None}


class TestErrors:
    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failures(self, client, session, status_code):
        session.request.return_value = _mock_response(
            {"success": False, "message": "Unauthenticated."}, status_code
        )
        with pytest.raises(ScheduleAuthenticationError) as exc_info:
            client.list_trainers()
        assert exc_info.value.status_code == status_code
        assert isinstance(exc_info.value, ScheduleTransportError)

    def test_validation_error_carries_field_messages(self, client, session):
        session.request.return_value = _mock_response(
            {
                "success": False,
                "message": "Trainer is not available for this session",
                "errors": {"trainer_id": ["Trainer is not available for this session"]},
            },
            422,
        )
        with pytest.raises(ScheduleValidationError) as exc_info:
            client.set_session_trainer("9001", "T3")

        error = exc_info.value
        assert error.message == "Trainer is not available for this session"
        assert error.field_messages == ["Trainer is not available for this session"]

    def test_server_error(self, client, session):
        session.request.return_value = _mock_response({"success": False, "message": "Boom"}, 500)
        with pytest.raises(ScheduleApiError) as exc_info:
            client.list_trainers()
        assert exc_info.value.status_code == 500

    def test_network_error_wrapped(self, client, session):
        session.request.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(ScheduleApiError):
            client.list_trainers()

    def test_success_false_with_200(self, client, session):
        session.request.return_value = _mock_response({"success": False, "message": "Nope"})
        with pytest.raises(ScheduleApiError, match="Nope"):
            client.list_trainers()

    def test_non_json_body(self, client, session):
        response = _mock_response(None)
        response.json.side_effect = ValueError("no json")
        session.request.return_value = response
        with pytest.raises(ScheduleApiError):
            client.list_trainers()
