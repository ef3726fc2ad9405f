"""
SQLite implementation of reminder storage.

Status changes are single UPDATE statements guarded by the expected
status, which SQLite executes atomically across connections.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite

from smsreminder.config import get_logger
from smsreminder.core.entities.reminder import (
    Reminder,
    ReminderStatus,
    can_transition,
    utcnow,
)
from smsreminder.core.exceptions import (
    DatabaseError,
    InvalidTransitionError,
    ReminderNotFoundError,
    StaleStateError,
)
from smsreminder.core.interfaces.storage import IReminderStore
from smsreminder.infrastructure.storage.sqlite.connection import ConnectionPool

logger = get_logger(__name__)

# Columns compare_and_transition may write besides status
MUTABLE_FIELDS = frozenset(
    {
        "retry_count",
        "last_error",
        "channel_message_id",
        "sent_at",
        "job_id",
        "claimed_until",
    }
)
_DATETIME_FIELDS = frozenset({"sent_at", "claimed_until"})


def _dt_to_db(value: datetime | None) -> str | None:
    """Fixed-width UTC ISO string, so text comparison orders by time."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _dt_from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SQLiteReminderStore(IReminderStore):
    """SQLite implementation of reminder storage."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def create(self, reminder: Reminder) -> Reminder:
        """Create a new reminder."""
        reminder = reminder.model_copy(
            update={
                "status": ReminderStatus.SCHEDULED,
                "retry_count": 0,
                "channel_message_id": None,
                "sent_at": None,
                "claimed_until": None,
            }
        )
        try:
            async with self._pool.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO reminders (
                        id, recipient, body, fire_at, timezone, status,
                        retry_count, last_error, job_id,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        reminder.id,
                        reminder.recipient,
                        reminder.body,
                        _dt_to_db(reminder.fire_at),
                        reminder.timezone,
                        reminder.status.value,
                        reminder.retry_count,
                        reminder.last_error,
                        reminder.job_id,
                        _dt_to_db(reminder.created_at),
                        _dt_to_db(reminder.updated_at),
                    ),
                )
        except aiosqlite.Error as e:
            raise DatabaseError("create reminder", str(e)) from e

        logger.info("reminder_stored", reminder_id=reminder.id)
        return reminder

    async def get(self, reminder_id: str) -> Reminder:
        """Get reminder by ID."""
        try:
            async with self._pool.acquire() as conn:
                row = await self._fetch_row(conn, reminder_id)
        except aiosqlite.Error as e:
            raise DatabaseError("get reminder", str(e)) from e

        if row is None:
            raise ReminderNotFoundError(reminder_id)
        return self._row_to_entity(row)

    async def compare_and_transition(
        self,
        reminder_id: str,
        expected_status: ReminderStatus,
        new_status: ReminderStatus,
        *,
        unclaimed_at: datetime | None = None,
        **fields: Any,
    ) -> Reminder:
        """Atomically move a reminder between statuses."""
        if not can_transition(expected_status, new_status):
            raise InvalidTransitionError(expected_status.value, new_status.value)

        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

        assignments = ["status = ?", "updated_at = ?"]
        params: list[Any] = [new_status.value, _dt_to_db(utcnow())]
        for name, value in fields.items():
            assignments.append(f"{name} = ?")
            params.append(_dt_to_db(value) if name in _DATETIME_FIELDS else value)

        where = "id = ? AND status = ?"
        params.extend([reminder_id, expected_status.value])
        if unclaimed_at is not None:
            where += " AND (claimed_until IS NULL OR claimed_until <= ?)"
            params.append(_dt_to_db(unclaimed_at))

        try:
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(
                    f"UPDATE reminders SET {', '.join(assignments)} WHERE {where}",
                    params,
                )
                row = await self._fetch_row(conn, reminder_id)
                updated = cursor.rowcount == 1
        except aiosqlite.Error as e:
            raise DatabaseError("transition reminder", str(e)) from e

        if row is None:
            raise ReminderNotFoundError(reminder_id)
        if not updated:
            actual = row["status"]
            if actual == expected_status.value:
                actual = f"{actual} (delivery in progress)"
            raise StaleStateError(reminder_id, expected_status.value, actual)

        logger.debug(
            "reminder_transitioned",
            reminder_id=reminder_id,
            from_status=expected_status.value,
            to_status=new_status.value,
        )
        return self._row_to_entity(row)

    async def claim(
        self,
        reminder_id: str,
        now: datetime,
        lease_seconds: int,
    ) -> Reminder | None:
        """Take the delivery lease if it is free or expired."""
        now_db = _dt_to_db(now)
        try:
            async with self._pool.transaction() as conn:
                cursor = await conn.execute(
                    """
                    UPDATE reminders SET claimed_until = ?, updated_at = ?
                    WHERE id = ? AND status = ?
                      AND (claimed_until IS NULL OR claimed_until <= ?)
                    """,
                    (
                        _dt_to_db(now + timedelta(seconds=lease_seconds)),
                        now_db,
                        reminder_id,
                        ReminderStatus.SCHEDULED.value,
                        now_db,
                    ),
                )
                if cursor.rowcount != 1:
                    return None
                row = await self._fetch_row(conn, reminder_id)
        except aiosqlite.Error as e:
            raise DatabaseError("claim reminder", str(e)) from e

        logger.debug("reminder_claimed", reminder_id=reminder_id, lease_seconds=lease_seconds)
        return self._row_to_entity(row)

    async def list_reminders(
        self,
        status: ReminderStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Reminder]:
        """List reminders with optional status filter."""
        try:
            async with self._pool.acquire() as conn:
                if status is not None:
                    cursor = await conn.execute(
                        """
                        SELECT * FROM reminders
                        WHERE status = ?
                        ORDER BY fire_at DESC
                        LIMIT ? OFFSET ?
                        """,
                        (status.value, limit, offset),
                    )
                else:
                    cursor = await conn.execute(
                        """
                        SELECT * FROM reminders
                        ORDER BY fire_at DESC
                        LIMIT ? OFFSET ?
                        """,
                        (limit, offset),
                    )
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise DatabaseError("list reminders", str(e)) from e

        return [self._row_to_entity(row) for row in rows]

    @staticmethod
    async def _fetch_row(conn: aiosqlite.Connection, reminder_id: str) -> aiosqlite.Row | None:
        cursor = await conn.execute("SELECT * FROM reminders WHERE id = ?", (reminder_id,))
        return await cursor.fetchone()

    @staticmethod
    def _row_to_entity(row: aiosqlite.Row) -> Reminder:
        """Convert a database row to a Reminder entity."""
        return Reminder(
            id=row["id"],
            recipient=row["recipient"],
            body=row["body"],
            fire_at=_dt_from_db(row["fire_at"]),
            timezone=row["timezone"],
            status=ReminderStatus(row["status"]),
            retry_count=row["retry_count"],
            last_error=row["last_error"],
            channel_message_id=row["channel_message_id"],
            sent_at=_dt_from_db(row["sent_at"]),
            job_id=row["job_id"],
            claimed_until=_dt_from_db(row["claimed_until"]),
            created_at=_dt_from_db(row["created_at"]),
            updated_at=_dt_from_db(row["updated_at"]),
        )
