"""Unit tests for DeliveryWorker."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import httpx
import pytest

from smsreminder.core.entities.reminder import ReminderStatus, utcnow
from smsreminder.core.exceptions import (
    DatabaseError,
    ReminderNotFoundError,
    SchedulingInfrastructureError,
    TerminalDeliveryError,
    TransientDeliveryError,
)
from smsreminder.core.interfaces.delivery import SendResult
from smsreminder.core.services.delivery_worker import DeliveryOutcome, DeliveryWorker
from smsreminder.infrastructure.sms import TwilioSMSChannel


def _transient(message: str = "Queue overflow") -> SendResult:
    return SendResult.failed(message, retryable=True, error_code=30001)


@pytest.fixture
def channel():
    return AsyncMock()


@pytest.fixture
def worker(store, channel) -> DeliveryWorker:
    return DeliveryWorker(store, channel, claim_wait_seconds=0.2, claim_poll_interval=0.01)


@pytest.fixture
async def reminder(store, make_reminder):
    return await store.create(make_reminder())


class TestDeliveryScenarios:
    """End-to-end retry and terminal policy."""

    async def test_sends_on_first_attempt(self, worker, store, channel, reminder):
        channel.send.return_value = SendResult.sent("SM100")

        report = await worker.handle(reminder.id)

        assert report.outcome is DeliveryOutcome.SENT
        assert not report.should_retry
        channel.send.assert_awaited_once_with(reminder.recipient, reminder.body)

        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.SENT
        assert stored.channel_message_id == "SM100"
        assert stored.sent_at is not None
        assert stored.retry_count == 0
        assert stored.claimed_until is None

    async def test_transient_twice_then_success(self, worker, store, channel, reminder):
        channel.send.side_effect = [_transient(), _transient(), SendResult.sent("SM200")]

        first = await worker.handle(reminder.id)
        second = await worker.handle(reminder.id)
        third = await worker.handle(reminder.id)

        assert [first.outcome, second.outcome, third.outcome] == [
            DeliveryOutcome.RETRY,
            DeliveryOutcome.RETRY,
            DeliveryOutcome.SENT,
        ]
        assert isinstance(first.error, TransientDeliveryError)
        assert first.should_retry

        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.SENT
        assert stored.retry_count == 2
        assert stored.channel_message_id == "SM200"
        assert channel.send.await_count == 3

    async def test_terminal_failure_on_first_attempt(self, worker, store, channel, reminder):
        channel.send.return_value = SendResult.failed(
            "The 'To' number is not a valid phone number.",
            retryable=False,
            error_code=21211,
        )

        report = await worker.handle(reminder.id)

        assert report.outcome is DeliveryOutcome.FAILED
        assert isinstance(report.error, TerminalDeliveryError)
        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.FAILED
        assert stored.retry_count == 1
        assert stored.last_error == "The 'To' number is not a valid phone number."

        # The scheduler may still call again; nothing more is sent
        again = await worker.handle(reminder.id)
        assert again.outcome is DeliveryOutcome.ALREADY_HANDLED
        channel.send.assert_awaited_once()

    async def test_retries_are_bounded(self, worker, store, channel, reminder):
        channel.send.return_value = _transient("Unreachable destination handset")

        outcomes = [(await worker.handle(reminder.id)).outcome for _ in range(5)]

        assert outcomes == [
            DeliveryOutcome.RETRY,
            DeliveryOutcome.RETRY,
            DeliveryOutcome.FAILED,
            DeliveryOutcome.ALREADY_HANDLED,
            DeliveryOutcome.ALREADY_HANDLED,
        ]
        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.FAILED
        assert stored.retry_count == 3
        assert stored.last_error == "Unreachable destination handset"
        assert channel.send.await_count == 3

    @pytest.mark.parametrize("max_retries", [1, 2, 5])
    async def test_attempts_never_exceed_max_retries(
        self, store, channel, make_reminder, max_retries
    ):
        reminder = await store.create(make_reminder())
        channel.send.return_value = _transient()
        worker = DeliveryWorker(store, channel, max_retries=max_retries)

        for _ in range(max_retries + 3):
            await worker.handle(reminder.id)

        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.FAILED
        assert stored.retry_count == max_retries
        assert channel.send.await_count == max_retries

    async def test_send_timeout_is_retryable(self, store, reminder):
        async def hang(recipient, body):
            await asyncio.sleep(5)

        channel = AsyncMock()
        channel.send.side_effect = hang
        worker = DeliveryWorker(store, channel, send_timeout=0.05)

        report = await worker.handle(reminder.id)

        assert report.outcome is DeliveryOutcome.RETRY
        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.SCHEDULED
        assert stored.retry_count == 1
        assert "timed out" in stored.last_error


    async def test_unreadable_channel_reply_is_recorded(self, store, reminder):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, text="<html>ok</html>")

        channel = TwilioSMSChannel(
            "AC123",
            "secret",
            "+15005550006",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        worker = DeliveryWorker(store, channel)

        report = await worker.handle(reminder.id)

        assert report.outcome is DeliveryOutcome.FAILED
        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.FAILED
        assert "unreadable" in stored.last_error
        assert stored.claimed_until is None


class TestAlreadyHandled:
    """Invocations for reminders that left SCHEDULED have no side effects."""

    @pytest.mark.parametrize(
        "status", [ReminderStatus.SENT, ReminderStatus.FAILED, ReminderStatus.CANCELLED]
    )
    async def test_terminal_reminder_is_not_sent(self, worker, store, channel, reminder, status):
        await store.compare_and_transition(reminder.id, ReminderStatus.SCHEDULED, status)

        report = await worker.handle(reminder.id)

        assert report.outcome is DeliveryOutcome.ALREADY_HANDLED
        assert report.status is status
        channel.send.assert_not_awaited()

    async def test_unknown_reminder(self, worker):
        with pytest.raises(ReminderNotFoundError):
            await worker.handle("does-not-exist")


class TestConcurrentInvocations:
    """Duplicate callbacks racing on the same reminder."""

    async def test_concurrent_duplicates_send_once(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        sends = []

        async def slow_send(recipient, body):
            sends.append(recipient)
            await asyncio.sleep(0.05)
            return SendResult.sent("SM300")

        channel = AsyncMock()
        channel.send.side_effect = slow_send
        worker = DeliveryWorker(store, channel, claim_wait_seconds=2.0, claim_poll_interval=0.01)

        reports = await asyncio.gather(worker.handle(reminder.id), worker.handle(reminder.id))

        assert len(sends) == 1
        assert sorted(r.outcome.value for r in reports) == ["already_handled", "sent"]
        stored = await store.get(reminder.id)
        assert stored.status is ReminderStatus.SENT
        assert stored.channel_message_id == "SM300"

    async def test_live_lease_defers_to_holder(self, worker, store, channel, reminder):
        claimed = await store.claim(reminder.id, utcnow(), lease_seconds=60)
        assert claimed is not None

        report = await worker.handle(reminder.id)

        assert report.outcome is DeliveryOutcome.RETRY
        channel.send.assert_not_awaited()

    async def test_expired_lease_is_taken_over(self, worker, store, channel, reminder):
        await store.claim(reminder.id, utcnow() - timedelta(minutes=5), lease_seconds=60)
        channel.send.return_value = SendResult.sent("SM400")

        report = await worker.handle(reminder.id)

        assert report.outcome is DeliveryOutcome.SENT
        channel.send.assert_awaited_once()


    async def test_short_lease_still_covers_send(self, store, make_reminder, clock):
        reminder = await store.create(make_reminder())
        release = asyncio.Event()
        sends = []

        async def blocked_send(recipient, body):
            sends.append(recipient)
            await release.wait()
            return SendResult.sent("SM500")

        channel = AsyncMock()
        channel.send.side_effect = blocked_send
        worker = DeliveryWorker(
            store,
            channel,
            lease_seconds=1,
            send_timeout=10,
            claim_wait_seconds=0.05,
            claim_poll_interval=0.01,
            clock=clock,
        )

        first = asyncio.create_task(worker.handle(reminder.id))
        while not sends:
            await asyncio.sleep(0.01)

        # Past the configured lease but within the send timeout
        clock.advance(seconds=5)
        duplicate = await worker.handle(reminder.id)
        release.set()
        report = await first

        assert duplicate.outcome is DeliveryOutcome.RETRY
        assert report.outcome is DeliveryOutcome.SENT
        assert len(sends) == 1


class TestStoreFailures:
    """Store errors surface as retryable infrastructure errors."""

    async def test_unreadable_store(self, channel):
        store = AsyncMock()
        store.get.side_effect = DatabaseError("get reminder", "database is locked")
        worker = DeliveryWorker(store, channel)

        with pytest.raises(SchedulingInfrastructureError):
            await worker.handle("r1")
        channel.send.assert_not_awaited()

    async def test_outcome_not_recorded(self, channel, make_reminder):
        reminder = make_reminder()
        store = AsyncMock()
        store.get.return_value = reminder
        store.claim.return_value = reminder
        store.compare_and_transition.side_effect = DatabaseError("transition", "disk full")
        channel.send.return_value = SendResult.sent("SM500")
        worker = DeliveryWorker(store, channel)

        with pytest.raises(SchedulingInfrastructureError) as exc_info:
            await worker.handle(reminder.id)
        assert exc_info.value.reminder_id == reminder.id
