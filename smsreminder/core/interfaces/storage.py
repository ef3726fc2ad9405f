"""
Abstract interface for reminder storage.

The store is the only shared state between request handlers, so every
status change goes through an atomic compare-and-transition.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from smsreminder.core.entities.reminder import Reminder, ReminderStatus


class IReminderStore(ABC):
    """
    Abstract interface for reminder persistence.

    Implementations: SQLiteReminderStore
    """

    @abstractmethod
    async def create(self, reminder: Reminder) -> Reminder:
        """Persist a new reminder in SCHEDULED state."""
        pass

    @abstractmethod
    async def get(self, reminder_id: str) -> Reminder:
        """
        Get reminder by ID.

        Raises:
            ReminderNotFoundError: if no such reminder exists
        """
        pass

    @abstractmethod
    async def compare_and_transition(
        self,
        reminder_id: str,
        expected_status: ReminderStatus,
        new_status: ReminderStatus,
        *,
        unclaimed_at: datetime | None = None,
        **fields: Any,
    ) -> Reminder:
        """
        Atomically move a reminder from expected_status to new_status.

        Extra fields (retry_count, last_error, channel_message_id, sent_at,
        job_id, claimed_until) are written in the same statement. When
        unclaimed_at is given, the transition also requires that no delivery
        lease is live at that instant.

        Raises:
            InvalidTransitionError: if the state machine forbids the change
            StaleStateError: if the stored status is not expected_status
            ReminderNotFoundError: if no such reminder exists
        """
        pass

    @abstractmethod
    async def claim(
        self,
        reminder_id: str,
        now: datetime,
        lease_seconds: int,
    ) -> Reminder | None:
        """
        Take the delivery lease on a SCHEDULED reminder.

        Returns the claimed reminder, or None if it is not SCHEDULED or
        another invocation holds an unexpired lease.
        """
        pass

    @abstractmethod
    async def list_reminders(
        self,
        status: ReminderStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Reminder]:
        """List reminders, newest fire time first."""
        pass
