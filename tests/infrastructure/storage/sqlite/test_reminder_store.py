"""Tests for SQLiteReminderStore."""

from datetime import UTC, datetime, timedelta

import pytest

from smsreminder.core.entities.reminder import ReminderStatus
from smsreminder.core.exceptions import (
    InvalidTransitionError,
    ReminderNotFoundError,
    StaleStateError,
)


class TestSQLiteReminderStore:
    """Tests for SQLiteReminderStore."""

    async def test_create_and_get(self, store, make_reminder):
        reminder = make_reminder(timezone="Europe/Paris")

        created = await store.create(reminder)
        fetched = await store.get(created.id)

        assert fetched.id == reminder.id
        assert fetched.recipient == "+14155550123"
        assert fetched.body == "Take your medication"
        assert fetched.fire_at == reminder.fire_at
        assert fetched.fire_at.tzinfo is not None
        assert fetched.timezone == "Europe/Paris"
        assert fetched.status is ReminderStatus.SCHEDULED
        assert fetched.retry_count == 0

    async def test_create_forces_scheduled(self, store, make_reminder):
        created = await store.create(
            make_reminder(status=ReminderStatus.SENT, retry_count=4)
        )
        fetched = await store.get(created.id)
        assert fetched.status is ReminderStatus.SCHEDULED
        assert fetched.retry_count == 0

    async def test_get_missing(self, store):
        with pytest.raises(ReminderNotFoundError):
            await store.get("nope")

    async def test_compare_and_transition_writes_fields(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        sent_at = datetime(2026, 3, 1, 13, 0, 5, tzinfo=UTC)

        updated = await store.compare_and_transition(
            reminder.id,
            ReminderStatus.SCHEDULED,
            ReminderStatus.SENT,
            channel_message_id="SM1",
            sent_at=sent_at,
        )

        assert updated.status is ReminderStatus.SENT
        assert updated.channel_message_id == "SM1"
        assert updated.sent_at == sent_at

    async def test_stale_expected_status(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        await store.compare_and_transition(
            reminder.id, ReminderStatus.SCHEDULED, ReminderStatus.CANCELLED
        )

        with pytest.raises(StaleStateError) as exc_info:
            await store.compare_and_transition(
                reminder.id, ReminderStatus.SCHEDULED, ReminderStatus.SENT
            )
        assert exc_info.value.actual == "CANCELLED"
        assert (await store.get(reminder.id)).status is ReminderStatus.CANCELLED

    async def test_terminal_transition_rejected(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        with pytest.raises(InvalidTransitionError):
            await store.compare_and_transition(
                reminder.id, ReminderStatus.SENT, ReminderStatus.SCHEDULED
            )

    async def test_unknown_field_rejected(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        with pytest.raises(ValueError):
            await store.compare_and_transition(
                reminder.id,
                ReminderStatus.SCHEDULED,
                ReminderStatus.SCHEDULED,
                recipient="+15550000000",
            )

    async def test_transition_missing_reminder(self, store):
        with pytest.raises(ReminderNotFoundError):
            await store.compare_and_transition(
                "nope", ReminderStatus.SCHEDULED, ReminderStatus.CANCELLED
            )

    async def test_claim_is_exclusive_until_expiry(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        now = datetime(2026, 3, 1, 13, 0, tzinfo=UTC)

        first = await store.claim(reminder.id, now, lease_seconds=60)
        second = await store.claim(reminder.id, now + timedelta(seconds=30), lease_seconds=60)
        after_expiry = await store.claim(reminder.id, now + timedelta(seconds=61), lease_seconds=60)

        assert first is not None
        assert first.claimed_until == now + timedelta(seconds=60)
        assert second is None
        assert after_expiry is not None

    async def test_claim_requires_scheduled(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        await store.compare_and_transition(
            reminder.id, ReminderStatus.SCHEDULED, ReminderStatus.FAILED
        )
        assert await store.claim(reminder.id, datetime.now(UTC), 60) is None

    async def test_unclaimed_guard(self, store, make_reminder):
        reminder = await store.create(make_reminder())
        now = datetime(2026, 3, 1, 13, 0, tzinfo=UTC)
        await store.claim(reminder.id, now, lease_seconds=60)

        with pytest.raises(StaleStateError):
            await store.compare_and_transition(
                reminder.id,
                ReminderStatus.SCHEDULED,
                ReminderStatus.CANCELLED,
                unclaimed_at=now + timedelta(seconds=10),
            )

        cancelled = await store.compare_and_transition(
            reminder.id,
            ReminderStatus.SCHEDULED,
            ReminderStatus.CANCELLED,
            unclaimed_at=now + timedelta(seconds=60),
        )
        assert cancelled.status is ReminderStatus.CANCELLED

    async def test_list_reminders(self, store, make_reminder, clock):
        early = await store.create(make_reminder(fire_at=clock.now + timedelta(hours=1)))
        late = await store.create(make_reminder(fire_at=clock.now + timedelta(days=2)))
        await store.compare_and_transition(
            early.id, ReminderStatus.SCHEDULED, ReminderStatus.SENT
        )

        everything = await store.list_reminders()
        assert [r.id for r in everything] == [late.id, early.id]

        sent = await store.list_reminders(status=ReminderStatus.SENT)
        assert [r.id for r in sent] == [early.id]

        assert len(await store.list_reminders(limit=1, offset=1)) == 1
