"""Reminder entity and its delivery state machine."""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class ReminderStatus(str, Enum):
    """Lifecycle states of a reminder."""

    SCHEDULED = "SCHEDULED"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not ReminderStatus.SCHEDULED


# SCHEDULED -> SCHEDULED records a retryable attempt without leaving the state.
ALLOWED_TRANSITIONS: dict[ReminderStatus, frozenset[ReminderStatus]] = {
    ReminderStatus.SCHEDULED: frozenset(
        {
            ReminderStatus.SCHEDULED,
            ReminderStatus.SENT,
            ReminderStatus.FAILED,
            ReminderStatus.CANCELLED,
        }
    ),
    ReminderStatus.SENT: frozenset(),
    ReminderStatus.FAILED: frozenset(),
    ReminderStatus.CANCELLED: frozenset(),
}


def can_transition(from_status: ReminderStatus, to_status: ReminderStatus) -> bool:
    """Check whether the state machine permits a status change."""
    return to_status in ALLOWED_TRANSITIONS[from_status]


def utcnow() -> datetime:
    return datetime.now(UTC)


class Reminder(BaseModel):
    """
    A single scheduled SMS.

    Created SCHEDULED by intake, afterwards mutated only through
    compare-and-transition by the delivery worker or cancellation.
    Never deleted.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    recipient: str
    body: str
    fire_at: datetime
    timezone: str = "UTC"
    status: ReminderStatus = ReminderStatus.SCHEDULED
    retry_count: int = 0
    last_error: str | None = None
    channel_message_id: str | None = None
    sent_at: datetime | None = None
    job_id: str | None = None
    claimed_until: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_claimed(self, now: datetime | None = None) -> bool:
        """Check if a delivery lease is currently held on this reminder."""
        if self.claimed_until is None:
            return False
        return self.claimed_until > (now or utcnow())
