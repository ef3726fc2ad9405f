"""
Schema migrations for the reminder database.

Files named ``vNNN_<name>.sql`` in this package are applied in version
order and recorded in ``schema_migrations`` with a checksum. When a run
has pending work the database is snapshotted first; if any migration
fails the snapshot is copied back so the file is left as it was.
"""

import hashlib
import re
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import aiosqlite

from smsreminder.config import get_logger, get_settings

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent
_FILENAME = re.compile(r"v(\d+)_(.+)\.sql")


@dataclass(frozen=True)
class Migration:
    version: str
    name: str
    sql: str

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode()).hexdigest()[:16]

    @classmethod
    def load(cls, path: Path) -> "Migration":
        match = _FILENAME.fullmatch(path.name)
        if not match:
            raise ValueError(f"Invalid migration filename: {path.name}")
        return cls(match.group(1), match.group(2), path.read_text(encoding="utf-8"))


@dataclass
class MigrationResult:
    version: str
    name: str
    success: bool
    execution_time_ms: int
    error: str | None = None


def discover_migrations(directory: Path = MIGRATIONS_DIR) -> list[Migration]:
    """Bundled migrations in version order."""
    migrations = []
    for path in sorted(directory.glob("v*.sql")):
        try:
            migrations.append(Migration.load(path))
        except ValueError as e:
            logger.warning("skipping_invalid_migration", path=str(path), error=str(e))
    return migrations


async def get_applied_migrations(conn: aiosqlite.Connection) -> dict[str, str]:
    """Applied versions mapped to their recorded checksums."""
    try:
        cursor = await conn.execute("SELECT version, checksum FROM schema_migrations")
    except aiosqlite.OperationalError:
        # Fresh database
        return {}
    return {row[0]: row[1] for row in await cursor.fetchall()}


async def _apply(conn: aiosqlite.Connection, migration: Migration) -> MigrationResult:
    start = time.monotonic()
    try:
        await conn.executescript(migration.sql)
        elapsed = int((time.monotonic() - start) * 1000)
        await conn.execute(
            "INSERT OR REPLACE INTO schema_migrations "
            "(version, name, checksum, execution_time_ms) VALUES (?, ?, ?, ?)",
            (migration.version, migration.name, migration.checksum, elapsed),
        )
        await conn.commit()
    except aiosqlite.Error as e:
        await conn.rollback()
        logger.error("migration_failed", version=migration.version, error=str(e))
        return MigrationResult(
            migration.version,
            migration.name,
            success=False,
            execution_time_ms=int((time.monotonic() - start) * 1000),
            error=str(e),
        )

    logger.info(
        "migration_applied",
        version=migration.version,
        name=migration.name,
        execution_time_ms=elapsed,
    )
    return MigrationResult(migration.version, migration.name, True, elapsed)


async def _copy_database(source: Path, target: Path) -> None:
    async with aiosqlite.connect(source) as src, aiosqlite.connect(target) as dst:
        await src.backup(dst)


def _pending(migrations: list[Migration], applied: dict[str, str]) -> list[Migration]:
    pending = []
    for migration in migrations:
        recorded = applied.get(migration.version)
        if recorded is None:
            pending.append(migration)
        elif recorded != migration.checksum:
            logger.warning("migration_checksum_changed", version=migration.version)
    return pending


async def run_migrations(
    db_path: Path | None = None,
    create_backup_before: bool = True,
    directory: Path = MIGRATIONS_DIR,
) -> list[MigrationResult]:
    """
    Apply pending migrations, stopping at the first failure.

    Args:
        db_path: database file (default from settings)
        create_backup_before: snapshot an existing database before applying
        directory: where the migration files live

    Returns:
        One result per migration attempted; empty when up to date.
    """
    db_path = db_path or get_settings().storage.db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    existed = db_path.exists()

    async with aiosqlite.connect(db_path) as conn:
        await conn.execute("PRAGMA journal_mode=WAL")
        pending = _pending(discover_migrations(directory), await get_applied_migrations(conn))
        if not pending:
            logger.debug("schema_up_to_date", db_path=str(db_path))
            return []

        backup_path = None
        if create_backup_before and existed:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_path = db_path.with_name(f"{db_path.stem}.pre-migrate-{stamp}.db")
            await _copy_database(db_path, backup_path)
            logger.info("database_snapshot_created", backup_path=str(backup_path))

        results = []
        for migration in pending:
            result = await _apply(conn, migration)
            results.append(result)
            if not result.success:
                break

    if backup_path is not None:
        if not all(r.success for r in results):
            await _copy_database(backup_path, db_path)
            logger.warning("database_restored_from_snapshot", backup_path=str(backup_path))
        backup_path.unlink()

    return results
