"""
Schedule API Client

Reads bookings, trainers, availability and absences from the admin scheduling
API and writes trainer assignments back. Every response is wrapped as

    {"success": bool, "data": ..., "message": str, "meta": {...}, "errors": {...}}

and this client unwraps it to the "data" part.
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

import requests

from schedule_board.domain.booking import Booking, flatten_sessions
from schedule_board.domain.session import Session
from schedule_board.domain.trainer import CandidateTrainer, Trainer
from schedule_board.utils.logger import get_logger, log_operation

logger = get_logger(__name__)


class ScheduleTransportError(RuntimeError):
    """Base class for failures talking to the schedule API."""

    def __init__(
        self,
        message: str,
        operation: str,
        status_code: Optional[int] = None,
        response_snippet: Optional[str] = None,
    ) -> None:
        status_fragment = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"{message} during {operation}{status_fragment}")
        self.message = message
        self.operation = operation
        self.status_code = status_code
        self.response_snippet = response_snippet


class ScheduleApiError(ScheduleTransportError):
    """Network failure, unexpected HTTP status or malformed response."""


class ScheduleAuthenticationError(ScheduleTransportError):
    """Raised when the API rejects the bearer token (401/403)."""


class ScheduleValidationError(ScheduleTransportError):
    """Raised on 422: the server refused the request and said why."""

    def __init__(
        self,
        message: str,
        operation: str,
        errors: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = 422,
    ) -> None:
        super().__init__(message, operation, status_code)
        self.errors = errors or {}

    @property
    def field_messages(self) -> List[str]:
        """Flattened server field messages, in field order."""
        messages: List[str] = []
        for value in self.errors.values():
            if isinstance(value, (list, tuple)):
                messages.extend(str(item) for item in value)
            else:
                messages.append(str(value))
        return messages


class ScheduleAPIClient:
    """
    Client for the admin scheduling API.

    Holds a requests.Session; a bearer token, when configured, is attached to
    every request. Calls are synchronous and never retried: a failed read leaves
    the caller's previous data in place until the next manual refresh.
    """

    DEFAULT_TIMEOUT = 10
    MAX_RANGE_DAYS = 93
    BOOKING_STATUS_FILTER = "confirmed"
    BOOKING_FETCH_LIMIT = 1000

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_range_days: int = MAX_RANGE_DAYS,
        booking_status_filter: str = BOOKING_STATUS_FILTER,
        booking_fetch_limit: int = BOOKING_FETCH_LIMIT,
    ):
        """
        Initialize schedule API client.

        Args:
            base_url: API root, e.g. "https://api.example.com/api/v1"
            token: Optional bearer token
            session: requests.Session to use (a new one is created if omitted)
            timeout: Per-request timeout in seconds
            max_range_days: Longest date range the server accepts
            booking_status_filter: Booking status requested from the bookings endpoint
            booking_fetch_limit: Page size requested from the bookings endpoint
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_range_days = max_range_days
        self.booking_status_filter = booking_status_filter
        self.booking_fetch_limit = booking_fetch_limit

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "ScheduleAPIClient":
        """Build a client from a loaded Settings object."""
        return cls(
            base_url=settings.api_base_url,
            token=settings.get_api_token(),
            session=session,
            timeout=settings.api_timeout_seconds,
            max_range_days=settings.max_range_days,
            booking_status_filter=settings.booking_status_filter,
            booking_fetch_limit=settings.booking_fetch_limit,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and unwrap the response envelope.

        Raises:
            ScheduleAuthenticationError: On 401/403
            ScheduleValidationError: On 422
            ScheduleApiError: On any other failure
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=json_body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(
                "Schedule API request failed",
                operation=operation,
                context={"method": method, "path": path},
                error=str(e),
            )
            raise ScheduleApiError("Request failed", operation) from e

        status_code = response.status_code
        body = self._parse_body(response)
        server_message = body.get("message") if isinstance(body, dict) else None

        if status_code in (401, 403):
            logger.error(
                "Authentication rejected by schedule API",
                operation=operation,
                context={"path": path, "status": status_code},
            )
            raise ScheduleAuthenticationError(
                server_message or "Authentication rejected",
                operation,
                status_code=status_code,
                response_snippet=self._snippet(response),
            )

        if status_code == 422:
            errors = body.get("errors") if isinstance(body, dict) else None
            logger.warning(
                "Schedule API rejected request",
                operation=operation,
                context={"path": path, "errors": errors},
                error=server_message,
            )
            raise ScheduleValidationError(
                server_message or "Request was rejected by the server",
                operation,
                errors=errors if isinstance(errors, dict) else None,
            )

        if status_code >= 400:
            logger.error(
                "Schedule API returned an error status",
                operation=operation,
                context={"path": path, "status": status_code},
                error=server_message,
            )
            raise ScheduleApiError(
                server_message or "Unexpected response status",
                operation,
                status_code=status_code,
                response_snippet=self._snippet(response),
            )

        if not isinstance(body, dict):
            raise ScheduleApiError("Response body is not a JSON object", operation, status_code)

        if body.get("success") is False:
            raise ScheduleApiError(
                server_message or "Server reported failure", operation, status_code
            )

        return body.get("data")

    @staticmethod
    def _parse_body(response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    @staticmethod
    def _snippet(response) -> Optional[str]:
        text = getattr(response, "text", None)
        return text[:200] if isinstance(text, str) else None

    def _enforce_max_date_range(
        self, date_from: date, date_to: date, operation: str
    ) -> Tuple[date, date, bool]:
        """
        Clamp a range to the server's maximum span.

        Returns:
            Tuple of (date_from, date_to, adjusted)
        """
        adjusted = False

        if date_to < date_from:
            logger.warning(
                "Range end precedes start; normalizing range",
                operation=operation,
                context={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
            )
            date_to = date_from
            adjusted = True

        allowed_end = date_from + timedelta(days=self.max_range_days - 1)
        if date_to > allowed_end:
            logger.info(
                f"Clamping date range to {self.max_range_days} days",
                operation=operation,
                context={
                    "requested_from": date_from.isoformat(),
                    "requested_to": date_to.isoformat(),
                    "clamped_to": allowed_end.isoformat(),
                },
            )
            date_to = allowed_end
            adjusted = True

        return date_from, date_to, adjusted

    @staticmethod
    def _items(data: Any, key: str) -> List[Any]:
        """Accept both a bare list and {"<key>": [...]} as list payloads."""
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return data.get(key) or []
        return []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @log_operation("fetch_bookings")
    def list_bookings(self, date_from: date, date_to: date) -> List[Booking]:
        """
        Confirmed bookings with at least one session in the range.

        Returns:
            Booking objects with nested sessions; malformed bookings are skipped
        """
        date_from, date_to, _ = self._enforce_max_date_range(date_from, date_to, "fetch_bookings")
        data = self._request(
            "GET",
            "/admin/bookings",
            "fetch_bookings",
            params={
                "status": self.booking_status_filter,
                "session_date_from": date_from.isoformat(),
                "session_date_to": date_to.isoformat(),
                "limit": self.booking_fetch_limit,
            },
        )

        bookings: List[Booking] = []
        for item in self._items(data, "bookings"):
            try:
                bookings.append(Booking.from_dict(item))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(
                    "Skipping malformed booking",
                    operation="fetch_bookings",
                    error=str(e),
                )

        logger.info(
            f"Fetched {len(bookings)} bookings",
            operation="fetch_bookings",
            context={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )
        return bookings

    def list_sessions(self, date_from: date, date_to: date) -> List[Session]:
        """Sessions of all confirmed bookings, restricted to the requested range."""
        date_from, date_to, _ = self._enforce_max_date_range(date_from, date_to, "fetch_sessions")
        bookings = self.list_bookings(date_from, date_to)
        return [s for s in flatten_sessions(bookings) if date_from <= s.date <= date_to]

    @log_operation("fetch_trainers")
    def list_trainers(self) -> List[Trainer]:
        data = self._request("GET", "/admin/trainers", "fetch_trainers")
        trainers: List[Trainer] = []
        for item in self._items(data, "trainers"):
            try:
                trainers.append(Trainer.from_dict(item))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed trainer", operation="fetch_trainers", error=str(e))
        return trainers

    @log_operation("fetch_availability")
    def get_availability(self, date_from: date, date_to: date) -> Dict[str, Any]:
        """Raw availability payload: {"trainers": [{"id", "name", "slots": [...]}]}."""
        date_from, date_to, _ = self._enforce_max_date_range(
            date_from, date_to, "fetch_availability"
        )
        data = self._request(
            "GET",
            "/admin/trainers/availability",
            "fetch_availability",
            params={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )
        return data if isinstance(data, dict) else {"trainers": self._items(data, "trainers")}

    @log_operation("fetch_absences")
    def get_absence_dates(self, date_from: date, date_to: date) -> Dict[str, Any]:
        """Raw absence payload: {"trainers": [{"id", "approved_dates", "pending_dates"}]}."""
        date_from, date_to, _ = self._enforce_max_date_range(date_from, date_to, "fetch_absences")
        data = self._request(
            "GET",
            "/admin/trainers/absence-dates",
            "fetch_absences",
            params={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )
        return data if isinstance(data, dict) else {"trainers": self._items(data, "trainers")}

    def list_candidate_trainers(self, session_id: str) -> List[CandidateTrainer]:
        """Server-computed trainers that may take an unassigned session."""
        data = self._request(
            "GET",
            f"/admin/bookings/sessions/{session_id}/available-trainers",
            "fetch_candidate_trainers",
        )
        candidates: List[CandidateTrainer] = []
        for item in self._items(data, "trainers"):
            try:
                candidates.append(CandidateTrainer.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "Skipping malformed candidate trainer",
                    operation="fetch_candidate_trainers",
                    context={"session_id": str(session_id)},
                    error=str(e),
                )
        return candidates

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_session_trainer(self, session_id: str, trainer_id: Optional[str]) -> Any:
        """
        Set or clear (trainer_id=None) the trainer of a session.

        The server re-validates the move; a refusal raises ScheduleValidationError
        with the server's message.
        """
        data = self._request(
            "PUT",
            f"/admin/bookings/sessions/{session_id}/trainer",
            "set_session_trainer",
            json_body={"trainer_id": trainer_id},
        )
        logger.info(
            "Trainer assignment written",
            operation="set_session_trainer",
            context={"session_id": str(session_id), "trainer_id": trainer_id},
        )
        return data
