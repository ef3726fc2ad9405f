"""Domain entities."""

from smsreminder.core.entities.reminder import (
    ALLOWED_TRANSITIONS,
    Reminder,
    ReminderStatus,
    can_transition,
    utcnow,
)

__all__ = [
    "Reminder",
    "ReminderStatus",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "utcnow",
]
