"""Tests for the schema migrator."""

import shutil
from pathlib import Path

import aiosqlite

from smsreminder.infrastructure.storage.sqlite.migrations.migrator import (
    MIGRATIONS_DIR,
    discover_migrations,
    get_applied_migrations,
    run_migrations,
)


async def _tables(db_path: Path) -> set[str]:
    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        return {row[0] for row in await cursor.fetchall()}


class TestMigrator:
    """Versioned migrations."""

    def test_discovers_bundled_migrations(self):
        migrations = discover_migrations()
        assert migrations
        assert migrations[0].version == "001"
        assert migrations[0].name == "reminders"
        assert len(migrations[0].checksum) == 16

    async def test_applies_and_records(self, tmp_path: Path):
        db_path = tmp_path / "fresh.db"

        results = await run_migrations(db_path, create_backup_before=False)

        assert results and all(r.success for r in results)
        async with aiosqlite.connect(db_path) as conn:
            applied = await get_applied_migrations(conn)
        assert "001" in applied
        assert "reminders" in await _tables(db_path)

    async def test_second_run_is_noop(self, tmp_path: Path):
        db_path = tmp_path / "again.db"
        await run_migrations(db_path, create_backup_before=False)

        results = await run_migrations(db_path)

        assert results == []
        assert not list(tmp_path.glob("*.pre-migrate-*"))

    async def test_failed_run_restores_snapshot(self, tmp_path: Path):
        db_path = tmp_path / "reminders.db"
        await run_migrations(db_path, create_backup_before=False)

        migrations_dir = tmp_path / "migrations"
        migrations_dir.mkdir()
        for path in MIGRATIONS_DIR.glob("v*.sql"):
            shutil.copy(path, migrations_dir / path.name)
        (migrations_dir / "v900_audit_notes.sql").write_text(
            "CREATE TABLE audit_notes (id INTEGER PRIMARY KEY);"
        )
        (migrations_dir / "v901_broken.sql").write_text("CREATE TABLE oops (;")

        results = await run_migrations(db_path, directory=migrations_dir)

        assert [(r.version, r.success) for r in results] == [("900", True), ("901", False)]
        assert "audit_notes" not in await _tables(db_path)
        async with aiosqlite.connect(db_path) as conn:
            assert set(await get_applied_migrations(conn)) == {"001"}
        assert not list(tmp_path.glob("*.pre-migrate-*"))
