"""Cancellation of reminders that have not fired yet."""

from collections.abc import Callable
from datetime import datetime

from smsreminder.config import get_logger
from smsreminder.core.entities.reminder import Reminder, ReminderStatus, utcnow
from smsreminder.core.exceptions import StaleStateError
from smsreminder.core.interfaces.storage import IReminderStore

logger = get_logger(__name__)


class CancellationService:
    """
    Cancels SCHEDULED reminders.

    The transition requires that no delivery lease is live, so a reminder
    whose SMS is being sent right now cannot be cancelled.
    """

    def __init__(
        self,
        store: IReminderStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    async def cancel(self, reminder_id: str) -> Reminder:
        """
        Cancel a reminder. Cancelling twice is a no-op.

        Raises:
            ReminderNotFoundError: unknown reminder id
            StaleStateError: already sent, failed, or being delivered
        """
        reminder = await self._store.get(reminder_id)

        if reminder.status is ReminderStatus.CANCELLED:
            return reminder
        if reminder.is_terminal:
            raise StaleStateError(
                reminder_id, ReminderStatus.SCHEDULED.value, reminder.status.value
            )

        cancelled = await self._store.compare_and_transition(
            reminder_id,
            ReminderStatus.SCHEDULED,
            ReminderStatus.CANCELLED,
            unclaimed_at=self._clock(),
        )
        logger.info("reminder_cancelled", reminder_id=reminder_id)
        return cancelled
