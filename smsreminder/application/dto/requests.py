"""Request DTOs for API endpoints.

Field types are deliberately loose: the intake service checks every field
itself so that one response can list all of the problems at once.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScheduleReminderRequest(BaseModel):
    """Request to schedule an SMS reminder."""

    model_config = ConfigDict(populate_by_name=True)

    recipient: Any = Field(
        default=None,
        description="Destination phone number, E.164 after normalization",
        examples=["+14155550123"],
    )
    message: Any = Field(
        default=None,
        description="Reminder text",
        examples=["Take your medication"],
    )
    fire_at: Any = Field(
        default=None,
        alias="fireAt",
        description="ISO-8601 fire time; naive values are read in `timezone`",
        examples=["2026-11-01T09:00:00"],
    )
    timezone: Any = Field(
        default="UTC",
        description="IANA timezone name",
        examples=["America/New_York"],
    )
    consent: Any = Field(
        default=None,
        description="Recipient agreed to receive SMS reminders",
    )


class DeliveryCallbackRequest(BaseModel):
    """Scheduler callback payload."""

    model_config = ConfigDict(populate_by_name=True)

    reminder_id: str | None = Field(default=None, alias="reminderId")
