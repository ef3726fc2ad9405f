"""
Delivery Worker.

Invoked by the job scheduler at fire time, at least once per reminder.
Each invocation re-reads the reminder and applies the state machine:

    SENT / FAILED / CANCELLED  -> already handled, no side effects
    SCHEDULED                  -> take the delivery lease, send, transition

Only the lease holder talks to the channel, so concurrent duplicate
invocations cannot send twice. The worker never schedules its own retries;
it reports RETRY and the scheduler's envelope re-invokes it.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from smsreminder.config import get_logger
from smsreminder.core.entities.reminder import Reminder, ReminderStatus, utcnow
from smsreminder.core.exceptions import (
    DeliveryError,
    ReminderNotFoundError,
    SchedulingInfrastructureError,
    StaleStateError,
    StorageError,
    TerminalDeliveryError,
    TransientDeliveryError,
)
from smsreminder.core.interfaces.delivery import IDeliveryChannel, SendResult
from smsreminder.core.interfaces.storage import IReminderStore

logger = get_logger(__name__)

MAX_RETRIES = 3


class DeliveryOutcome(str, Enum):
    """What a single worker invocation concluded."""

    SENT = "sent"
    ALREADY_HANDLED = "already_handled"
    RETRY = "retry"
    FAILED = "failed"


@dataclass
class DeliveryReport:
    """Result of one worker invocation."""

    reminder_id: str
    outcome: DeliveryOutcome
    status: ReminderStatus
    retry_count: int = 0
    channel_message_id: str | None = None
    error: DeliveryError | None = None

    @property
    def should_retry(self) -> bool:
        """Whether the scheduler should invoke the callback again."""
        return self.outcome is DeliveryOutcome.RETRY

    @classmethod
    def from_reminder(
        cls,
        reminder: Reminder,
        outcome: DeliveryOutcome,
        error: DeliveryError | None = None,
    ) -> "DeliveryReport":
        return cls(
            reminder_id=reminder.id,
            outcome=outcome,
            status=reminder.status,
            retry_count=reminder.retry_count,
            channel_message_id=reminder.channel_message_id,
            error=error,
        )


class DeliveryWorker:
    """
    Applies the retry and terminal policy to one reminder per call.

    retry_count counts failed attempts. A retryable failure keeps the
    reminder SCHEDULED while retry_count + 1 < max_retries; otherwise
    the reminder ends FAILED.
    """

    def __init__(
        self,
        store: IReminderStore,
        channel: IDeliveryChannel,
        max_retries: int = MAX_RETRIES,
        lease_seconds: int = 60,
        send_timeout: float = 30.0,
        claim_wait_seconds: float = 5.0,
        claim_poll_interval: float = 0.1,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._channel = channel
        self._max_retries = max_retries

        # The lease must outlive the send or a duplicate could take it over
        min_lease = math.ceil(send_timeout) + 1
        if lease_seconds < min_lease:
            logger.warning(
                "delivery_lease_extended",
                lease_seconds=lease_seconds,
                send_timeout=send_timeout,
                effective_lease_seconds=min_lease,
            )
            lease_seconds = min_lease
        self._lease_seconds = lease_seconds
        self._send_timeout = send_timeout
        self._claim_wait_seconds = claim_wait_seconds
        self._claim_poll_interval = claim_poll_interval
        self._clock = clock

    async def handle(self, reminder_id: str) -> DeliveryReport:
        """
        Process one scheduler invocation for a reminder.

        Raises:
            ReminderNotFoundError: unknown reminder id
            SchedulingInfrastructureError: the store could not be read or
                the outcome could not be recorded
        """
        reminder = await self._load(reminder_id)

        if reminder.is_terminal:
            logger.info(
                "delivery_already_handled",
                reminder_id=reminder_id,
                status=reminder.status.value,
            )
            return DeliveryReport.from_reminder(reminder, DeliveryOutcome.ALREADY_HANDLED)

        try:
            claimed = await self._store.claim(reminder_id, self._clock(), self._lease_seconds)
        except StorageError as e:
            raise SchedulingInfrastructureError("claim reminder", str(e), reminder_id) from e

        if claimed is None:
            return await self._await_concurrent_attempt(reminder_id)

        result = await self._send(claimed)

        if result.success:
            return await self._record_sent(claimed, result)
        return await self._record_failure(claimed, result)

    async def _load(self, reminder_id: str) -> Reminder:
        try:
            return await self._store.get(reminder_id)
        except ReminderNotFoundError:
            logger.warning("delivery_reminder_not_found", reminder_id=reminder_id)
            raise
        except StorageError as e:
            raise SchedulingInfrastructureError("load reminder", str(e), reminder_id) from e

    async def _send(self, reminder: Reminder) -> SendResult:
        """Send through the channel, bounded by the send timeout."""
        attempt = reminder.retry_count + 1
        logger.info("delivery_attempt", reminder_id=reminder.id, attempt=attempt)
        try:
            return await asyncio.wait_for(
                self._channel.send(reminder.recipient, reminder.body),
                timeout=self._send_timeout,
            )
        except TimeoutError:
            return SendResult.failed(
                f"Delivery timed out after {self._send_timeout}s", retryable=True
            )

    async def _record_sent(self, reminder: Reminder, result: SendResult) -> DeliveryReport:
        try:
            updated = await self._store.compare_and_transition(
                reminder.id,
                ReminderStatus.SCHEDULED,
                ReminderStatus.SENT,
                channel_message_id=result.channel_message_id,
                sent_at=self._clock(),
                claimed_until=None,
            )
        except StaleStateError:
            # Lease expired mid-send and someone else moved the reminder on
            logger.error(
                "delivery_sent_after_state_change",
                reminder_id=reminder.id,
                channel_message_id=result.channel_message_id,
            )
            return await self._report_current(reminder.id)
        except StorageError as e:
            logger.error(
                "delivery_sent_not_recorded",
                reminder_id=reminder.id,
                channel_message_id=result.channel_message_id,
                error=str(e),
            )
            raise SchedulingInfrastructureError(
                "record delivery", str(e), reminder.id
            ) from e

        logger.info(
            "delivery_sent",
            reminder_id=reminder.id,
            channel_message_id=result.channel_message_id,
            retry_count=updated.retry_count,
        )
        return DeliveryReport.from_reminder(updated, DeliveryOutcome.SENT)

    async def _record_failure(self, reminder: Reminder, result: SendResult) -> DeliveryReport:
        attempts = reminder.retry_count + 1
        reason = result.error or "Unknown delivery error"
        will_retry = result.retryable and attempts < self._max_retries

        if will_retry:
            error: DeliveryError = TransientDeliveryError(reminder.id, reason)
            new_status = ReminderStatus.SCHEDULED
        else:
            error = TerminalDeliveryError(reminder.id, reason)
            new_status = ReminderStatus.FAILED

        try:
            updated = await self._store.compare_and_transition(
                reminder.id,
                ReminderStatus.SCHEDULED,
                new_status,
                retry_count=attempts,
                last_error=reason,
                claimed_until=None,
            )
        except StaleStateError:
            return await self._report_current(reminder.id)
        except StorageError as e:
            raise SchedulingInfrastructureError(
                "record delivery failure", str(e), reminder.id
            ) from e

        if will_retry:
            logger.warning(
                "delivery_retry",
                reminder_id=reminder.id,
                retry_count=attempts,
                max_retries=self._max_retries,
                error=reason,
            )
            return DeliveryReport.from_reminder(updated, DeliveryOutcome.RETRY, error)

        logger.error(
            "delivery_failed",
            reminder_id=reminder.id,
            retry_count=attempts,
            retryable=result.retryable,
            error=reason,
        )
        return DeliveryReport.from_reminder(updated, DeliveryOutcome.FAILED, error)

    async def _await_concurrent_attempt(self, reminder_id: str) -> DeliveryReport:
        """
        Another invocation holds the lease: re-read until it finishes.

        Reports ALREADY_HANDLED once the holder's transition is terminal,
        RETRY if it left the reminder SCHEDULED or is still running.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._claim_wait_seconds

        while True:
            reminder = await self._load(reminder_id)
            if reminder.is_terminal:
                logger.info(
                    "delivery_already_handled",
                    reminder_id=reminder_id,
                    status=reminder.status.value,
                    concurrent=True,
                )
                return DeliveryReport.from_reminder(reminder, DeliveryOutcome.ALREADY_HANDLED)

            if not reminder.is_claimed(self._clock()) or loop.time() >= deadline:
                logger.info(
                    "delivery_deferred",
                    reminder_id=reminder_id,
                    in_progress=reminder.is_claimed(self._clock()),
                )
                return DeliveryReport.from_reminder(reminder, DeliveryOutcome.RETRY)

            await asyncio.sleep(self._claim_poll_interval)

    async def _report_current(self, reminder_id: str) -> DeliveryReport:
        reminder = await self._load(reminder_id)
        outcome = (
            DeliveryOutcome.ALREADY_HANDLED if reminder.is_terminal else DeliveryOutcome.RETRY
        )
        return DeliveryReport.from_reminder(reminder, outcome)
