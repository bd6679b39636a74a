"""
Unit tests for structured logging utility (schedule_board/utils/logger.py)

Tests covering:
- JSON log formatting with required fields
- Masking of parent and child names in log context
- Operation timing and argument capture via log_operation
"""

import json
import logging

import pytest

from schedule_board.domain.booking import Booking
from schedule_board.utils.logger import (
    StructuredLogger,
    get_logger,
    log_operation,
    mask_context,
    mask_name,
)


class TestMaskName:
    def test_masks_each_word(self):
        assert mask_name("Jane Doe") == "J*** D**"

    def test_single_letter_word(self):
        assert mask_name("J Doe") == "J D**"

    def test_empty_and_none(self):
        assert mask_name("") == "unknown"
        assert mask_name("   ") == "unknown"
        assert mask_name(None) == "unknown"


class TestMaskContext:
    def test_name_keys_masked(self):
        masked = mask_context(
            {"booking_id": "B1", "parent_name": "Jane Doe", "children": ["Sam", "Ann Lee"]}
        )
        assert masked == {"booking_id": "B1", "parent_name": "J*** D**", "children": ["S**", "A** L**"]}

    def test_other_keys_untouched(self):
        context = {"session_id": "S1", "trainer_id": "T1", "parent_name": None}
        assert mask_context(context) == context

    def test_format_log_masks_names(self):
        logger = StructuredLogger("test.format")
        entry = json.loads(logger._format_log("INFO", "x", context={"parent_name": "Jane Doe"}))
        assert entry["context"]["parent_name"] == "J*** D**"

    def test_booking_parse_log_hides_family_names(self, caplog):
        """Test: Skipping an unplaceable session logs the booking with names masked"""
        with caplog.at_level(logging.DEBUG, logger="schedule_board.domain.booking"):
            Booking.from_dict(
                {
                    "id": 7,
                    "parentName": "Jane Doe",
                    "children": ["Sam"],
                    "sessions": [{"id": 1, "date": "2024-06-10", "startTime": "", "endTime": "10:00"}],
                }
            )

        entries = [
            json.loads(r.getMessage())
            for r in caplog.records
            if r.name == "schedule_board.domain.booking"
        ]
        assert entries[0]["context"]["parent_name"] == "J*** D**"
        assert entries[0]["context"]["children"] == ["S**"]
        assert "Jane" not in caplog.text


class TestFormatLog:
    def test_required_fields(self):
        logger = StructuredLogger("test.format")
        entry = json.loads(logger._format_log("INFO", "Board refreshed"))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Board refreshed"
        assert entry["logger"] == "test.format"
        assert entry["timestamp"].endswith("Z")
        assert "operation" not in entry

    def test_optional_fields(self):
        logger = StructuredLogger("test.format")
        entry = json.loads(
            logger._format_log(
                "ERROR",
                "Trainer write failed",
                operation="assign_trainer",
                context={"session_id": "S1"},
                duration_ms=12.3456,
                error="HTTP 500",
            )
        )

        assert entry["operation"] == "assign_trainer"
        assert entry["context"] == {"session_id": "S1"}
        assert entry["duration_ms"] == 12.35
        assert entry["error"] == "HTTP 500"

    def test_non_serialisable_context(self):
        """Test: Dates and other objects in context are stringified"""
        from datetime import date

        logger = StructuredLogger("test.format")
        entry = json.loads(logger._format_log("INFO", "x", context={"day": date(2024, 6, 12)}))
        assert entry["context"]["day"] == "2024-06-12"


class TestLogOperation:
    def test_logs_completion_with_duration(self, caplog):
        @log_operation("sample_operation")
        def sample(session_id=None):
            return "done"

        with caplog.at_level(logging.DEBUG, logger=__name__):
            assert sample(session_id="S9") == "done"

        entries = [json.loads(r.getMessage()) for r in caplog.records if r.name == __name__]
        completed = [e for e in entries if e["message"] == "Completed sample_operation"]
        assert completed
        assert completed[0]["context"]["session_id"] == "S9"
        assert "duration_ms" in completed[0]

    def test_positional_domain_arguments_captured(self, caplog):
        """Test: Session and range arguments reach the context whether positional or keyword"""
        from datetime import date

        @log_operation("fetch_range")
        def fetch(session_id, date_from, date_to=None, limit=50):
            return []

        with caplog.at_level(logging.DEBUG, logger=__name__):
            fetch("S4", date(2024, 6, 10), date_to=date(2024, 6, 16))

        entries = [json.loads(r.getMessage()) for r in caplog.records if r.name == __name__]
        completed = [e for e in entries if e["message"] == "Completed fetch_range"][0]
        assert completed["context"] == {
            "function": "fetch",
            "session_id": "S4",
            "date_from": "2024-06-10",
            "date_to": "2024-06-16",
        }

    def test_logs_and_reraises_failures(self, caplog):
        @log_operation("failing_operation")
        def failing():
            raise ValueError("bad input")

        with caplog.at_level(logging.DEBUG, logger=__name__):
            with pytest.raises(ValueError):
                failing()

        entries = [json.loads(r.getMessage()) for r in caplog.records if r.name == __name__]
        failed = [e for e in entries if e["message"] == "Failed failing_operation"]
        assert failed[0]["error"] == "bad input"


def test_get_logger_returns_structured_logger():
    logger = get_logger("schedule_board.test")
    assert isinstance(logger, StructuredLogger)
    assert logger.logger.name == "schedule_board.test"
