"""Schedule API client and transport errors."""

from .schedule_api import (
    ScheduleAPIClient,
    ScheduleApiError,
    ScheduleAuthenticationError,
    ScheduleTransportError,
    ScheduleValidationError,
)

__all__ = [
    "ScheduleAPIClient",
    "ScheduleApiError",
    "ScheduleAuthenticationError",
    "ScheduleTransportError",
    "ScheduleValidationError",
]
