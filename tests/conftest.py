"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from smsreminder.core.entities.reminder import Reminder
from smsreminder.infrastructure.storage.sqlite import ConnectionPool, SQLiteReminderStore
from smsreminder.infrastructure.storage.sqlite.migrations.migrator import run_migrations

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Settable clock for services that take a ``clock`` callable."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakePipeline:
    """Queues sorted-set commands and runs them on execute()."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._commands: list[tuple[str, tuple]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._commands.clear()

    def zremrangebyscore(self, key, min_score, max_score):
        self._commands.append(("zremrangebyscore", (key, min_score, max_score)))
        return self

    def zadd(self, key, mapping):
        self._commands.append(("zadd", (key, mapping)))
        return self

    def zcard(self, key):
        self._commands.append(("zcard", (key,)))
        return self

    def zrange(self, key, start, end, withscores=False):
        self._commands.append(("zrange", (key, start, end, withscores)))
        return self

    def expire(self, key, seconds):
        self._commands.append(("expire", (key, seconds)))
        return self

    async def execute(self) -> list:
        if self._redis.fail_with is not None:
            raise self._redis.fail_with
        results = [getattr(self._redis, f"_{name}")(*args) for name, args in self._commands]
        self._commands.clear()
        return results


class FakeRedis:
    """In-memory stand-in for the slice of redis.asyncio the limiter uses."""

    def __init__(self):
        self.sets: dict[str, dict[str, float]] = {}
        self.expiry: dict[str, int] = {}
        self.fail_with: Exception | None = None
        self.closed = False

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    async def zrem(self, key, member) -> int:
        return 1 if self.sets.get(key, {}).pop(member, None) is not None else 0

    async def aclose(self) -> None:
        self.closed = True

    def _zremrangebyscore(self, key, min_score, max_score) -> int:
        members = self.sets.get(key, {})
        doomed = [m for m, s in members.items() if min_score <= s <= max_score]
        for member in doomed:
            del members[member]
        return len(doomed)

    def _zadd(self, key, mapping) -> int:
        self.sets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def _zcard(self, key) -> int:
        return len(self.sets.get(key, {}))

    def _zrange(self, key, start, end, withscores) -> list:
        ordered = sorted(self.sets.get(key, {}).items(), key=lambda item: item[1])
        selected = ordered[start : end + 1]
        return selected if withscores else [m for m, _ in selected]

    def _expire(self, key, seconds) -> bool:
        self.expiry[key] = seconds
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def db_path(tmp_path: Path) -> Path:
    """Temporary database with all migrations applied."""
    path = tmp_path / "reminders.db"
    await run_migrations(path, create_backup_before=False)
    return path


@pytest.fixture
async def pool(db_path: Path) -> AsyncGenerator[ConnectionPool, None]:
    pool = ConnectionPool(db_path, pool_size=3)
    await pool.initialize()
    yield pool
    await pool.close()


@pytest.fixture
def store(pool: ConnectionPool) -> SQLiteReminderStore:
    return SQLiteReminderStore(pool)


@pytest.fixture
def make_reminder() -> Callable[..., Reminder]:
    """Factory for reminders due one hour after FIXED_NOW."""

    def _make(**overrides) -> Reminder:
        data = {
            "recipient": "+14155550123",
            "body": "Take your medication",
            "fire_at": FIXED_NOW + timedelta(hours=1),
            "timezone": "UTC",
        }
        data.update(overrides)
        return Reminder(**data)

    return _make
