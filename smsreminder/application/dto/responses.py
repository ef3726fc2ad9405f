"""Response DTOs for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from smsreminder.core.entities.reminder import Reminder, ReminderStatus


class ScheduleReminderResponse(BaseModel):
    """Reminder accepted and scheduled."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    reminder_id: str = Field(..., alias="reminderId")
    scheduled_for: datetime = Field(..., alias="scheduledFor")
    message: str = "Reminder scheduled successfully"


class DeliveryResponse(BaseModel):
    """Outcome of one scheduler callback."""

    model_config = ConfigDict(populate_by_name=True)

    reminder_id: str = Field(..., alias="reminderId")
    outcome: str
    status: ReminderStatus
    retry_count: int = Field(0, alias="retryCount")
    message_id: str | None = Field(default=None, alias="messageId")
    error: str | None = None


class ReminderResponse(BaseModel):
    """Reminder status view."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    recipient: str
    message: str
    fire_at: datetime = Field(..., alias="fireAt")
    timezone: str
    status: ReminderStatus
    retry_count: int = Field(0, alias="retryCount")
    last_error: str | None = Field(default=None, alias="lastError")
    message_id: str | None = Field(default=None, alias="messageId")
    sent_at: datetime | None = Field(default=None, alias="sentAt")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @classmethod
    def from_entity(cls, reminder: Reminder) -> "ReminderResponse":
        return cls(
            id=reminder.id,
            recipient=reminder.recipient,
            message=reminder.body,
            fire_at=reminder.fire_at,
            timezone=reminder.timezone,
            status=reminder.status,
            retry_count=reminder.retry_count,
            last_error=reminder.last_error,
            message_id=reminder.channel_message_id,
            sent_at=reminder.sent_at,
            created_at=reminder.created_at,
            updated_at=reminder.updated_at,
        )


class ReminderListResponse(BaseModel):
    """Paginated list of reminders."""

    reminders: list[ReminderResponse]
    total: int


class TranscriptionResponse(BaseModel):
    """Speech-to-text result."""

    transcript: str
    confidence: float = 1.0


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = "1.0.0"
    uptime_seconds: float
    sms_enabled: bool = False
    rate_limiter_enabled: bool = False
    signature_verification: bool = False


class ErrorResponse(BaseModel):
    """Standardized error response DTO.

    Every error response includes:
    - error_code: machine-readable code (e.g. REMINDER_NOT_FOUND)
    - message: human-readable description
    - hint: suggested recovery action
    - path: request path that triggered the error
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")
    hint: str | None = Field(default=None, description="Suggested recovery action")
    detail: str | None = Field(default=None, description="Additional details")
    errors: dict[str, str] | None = Field(
        default=None, description="Per-field validation failures"
    )
    retry_after: int | None = Field(
        default=None, alias="retryAfter", description="Seconds until the quota resets"
    )
    path: str | None = Field(default=None, description="Request path")
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(populate_by_name=True)
