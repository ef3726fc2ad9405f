"""SQLite storage implementations."""

from smsreminder.infrastructure.storage.sqlite.connection import ConnectionPool
from smsreminder.infrastructure.storage.sqlite.reminder_store import SQLiteReminderStore

__all__ = [
    "ConnectionPool",
    "SQLiteReminderStore",
]
