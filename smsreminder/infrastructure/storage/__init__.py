"""Storage infrastructure implementations."""

from smsreminder.infrastructure.storage.sqlite import ConnectionPool, SQLiteReminderStore

__all__ = [
    "ConnectionPool",
    "SQLiteReminderStore",
]
