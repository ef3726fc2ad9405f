"""Data Transfer Objects for API layer.

Request DTOs: Validate and parse incoming API requests.
Response DTOs: Structure and serialize API responses.
"""

from smsreminder.application.dto.requests import (
    DeliveryCallbackRequest,
    ScheduleReminderRequest,
)
from smsreminder.application.dto.responses import (
    DeliveryResponse,
    ErrorResponse,
    HealthResponse,
    ReminderListResponse,
    ReminderResponse,
    ScheduleReminderResponse,
    TranscriptionResponse,
)

__all__ = [
    # Requests
    "ScheduleReminderRequest",
    "DeliveryCallbackRequest",
    # Responses
    "ScheduleReminderResponse",
    "DeliveryResponse",
    "ReminderResponse",
    "ReminderListResponse",
    "TranscriptionResponse",
    "HealthResponse",
    "ErrorResponse",
]
