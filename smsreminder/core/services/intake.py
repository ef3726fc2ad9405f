"""
Reminder Intake Service.

Validates a reminder request, persists it in SCHEDULED state and hands
it to the job scheduler. The record always exists before any external
system can reference its id.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from smsreminder.config import get_logger
from smsreminder.core.entities.reminder import Reminder, ReminderStatus, utcnow
from smsreminder.core.exceptions import (
    SchedulingInfrastructureError,
    StaleStateError,
    StorageError,
    ValidationError,
)
from smsreminder.core.interfaces.delivery import IJobScheduler
from smsreminder.core.interfaces.storage import IReminderStore
from smsreminder.core.services.validation import (
    MAX_MESSAGE_LENGTH,
    normalize_phone,
    parse_fire_at,
    resolve_timezone,
    sanitize_message,
)

logger = get_logger(__name__)


@dataclass
class IntakeResult:
    """Accepted reminder."""

    reminder_id: str
    fire_at: datetime
    job_id: str | None = None


class IntakeService:
    """
    Accepts new reminders.

    Rejections happen before any side effect: a ValidationError means
    nothing was written and nothing was enqueued.
    """

    def __init__(
        self,
        store: IReminderStore,
        scheduler: IJobScheduler,
        callback_url: str | None,
        max_attempts: int = 3,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        max_horizon: timedelta = timedelta(days=365),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._callback_url = callback_url
        self._max_attempts = max_attempts
        self._max_message_length = max_message_length
        self._max_horizon = max_horizon
        self._clock = clock

    async def submit(
        self,
        recipient: str | None,
        body: str | None,
        fire_at: str | datetime | None,
        timezone: str | None = "UTC",
        consent: bool | None = None,
    ) -> IntakeResult:
        """
        Validate, persist and schedule a reminder.

        Raises:
            ValidationError: one or more fields failed their checks
            SchedulingInfrastructureError: the store or scheduler failed
        """
        now = self._clock()
        errors: dict[str, str] = {}

        zone = resolve_timezone(timezone)
        if zone is None:
            errors["timezone"] = "Timezone is required and must be a valid IANA name"

        fire_at_utc: datetime | None = None
        if fire_at is None or fire_at == "":
            errors["fireAt"] = "Scheduled time is required"
        else:
            try:
                fire_at_utc = parse_fire_at(fire_at, zone)
            except ValueError:
                errors["fireAt"] = "Scheduled time must be a valid ISO-8601 date"

        if fire_at_utc is not None:
            if fire_at_utc <= now:
                errors["fireAt"] = "Scheduled time must be in the future"
            elif fire_at_utc > now + self._max_horizon:
                errors["fireAt"] = "Cannot schedule reminders more than 1 year in advance"

        if consent is not True:
            errors["consent"] = "You must agree to receive SMS reminders"

        phone = normalize_phone(recipient)
        if phone is None:
            errors["recipient"] = (
                "Invalid phone number. Please use international format (e.g., +1234567890)"
            )

        message = sanitize_message(body)
        if not message:
            errors["message"] = "Message cannot be empty"
        elif len(message) > self._max_message_length:
            errors["message"] = (
                f"Message cannot exceed {self._max_message_length} characters"
            )

        if errors:
            logger.info("intake_rejected", fields=sorted(errors))
            raise ValidationError(errors)

        reminder = Reminder(
            recipient=phone,
            body=message,
            fire_at=fire_at_utc,
            timezone=str(timezone).strip(),
            created_at=now,
            updated_at=now,
        )

        try:
            reminder = await self._store.create(reminder)
        except StorageError as e:
            logger.error("intake_store_failed", error=str(e))
            raise SchedulingInfrastructureError("store reminder", str(e)) from e

        logger.info(
            "reminder_created",
            reminder_id=reminder.id,
            fire_at=reminder.fire_at.isoformat(),
        )

        result = await self._scheduler.enqueue(
            self._callback_url,
            {"reminderId": reminder.id},
            reminder.fire_at,
            self._max_attempts,
        )

        if not result.success:
            error = result.error or "Failed to schedule reminder"
            await self._record_enqueue_failure(reminder.id, error)
            raise SchedulingInfrastructureError("schedule reminder", error, reminder.id)

        await self._record_job_id(reminder.id, result.job_id)

        logger.info(
            "reminder_scheduled",
            reminder_id=reminder.id,
            job_id=result.job_id,
            delay_seconds=result.delay_seconds,
        )
        return IntakeResult(
            reminder_id=reminder.id,
            fire_at=reminder.fire_at,
            job_id=result.job_id,
        )

    async def _record_enqueue_failure(self, reminder_id: str, error: str) -> None:
        """Move the just-created reminder to FAILED, keeping it as an audit row."""
        try:
            await self._store.compare_and_transition(
                reminder_id,
                ReminderStatus.SCHEDULED,
                ReminderStatus.FAILED,
                last_error=error,
            )
            logger.warning("reminder_enqueue_failed", reminder_id=reminder_id, error=error)
        except StorageError as e:
            logger.error(
                "enqueue_failure_not_recorded",
                reminder_id=reminder_id,
                error=error,
                store_error=str(e),
            )

    async def _record_job_id(self, reminder_id: str, job_id: str | None) -> None:
        """Attach the scheduler job id; the job is live even if this fails."""
        if not job_id:
            return
        try:
            await self._store.compare_and_transition(
                reminder_id,
                ReminderStatus.SCHEDULED,
                ReminderStatus.SCHEDULED,
                job_id=job_id,
            )
        except StaleStateError:
            # Delivery already ran for a zero-delay job
            logger.info("job_id_not_recorded", reminder_id=reminder_id, job_id=job_id)
        except StorageError as e:
            logger.warning(
                "job_id_record_failed",
                reminder_id=reminder_id,
                job_id=job_id,
                error=str(e),
            )
