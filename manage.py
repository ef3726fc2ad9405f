#!/usr/bin/env python3
"""
SMS reminder management CLI.

Usage:
    python manage.py migrate     Apply pending database migrations
    python manage.py status      Show applied and pending migrations
    python manage.py serve       Run the API server
"""

import argparse
import asyncio
import sys
from pathlib import Path

import aiosqlite

from smsreminder.config import configure_logging, get_settings
from smsreminder.infrastructure.storage.sqlite.migrations.migrator import (
    discover_migrations,
    get_applied_migrations,
    run_migrations,
)


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.db) if args.db else get_settings().storage.db_path


def cmd_migrate(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    results = asyncio.run(run_migrations(db_path, create_backup_before=not args.no_backup))

    if not results:
        print(f"Database {db_path} is up to date.")
        return

    for result in results:
        state = "ok" if result.success else f"FAILED: {result.error}"
        print(f"  v{result.version} {result.name} ({result.execution_time_ms}ms) {state}")

    if not all(r.success for r in results):
        sys.exit(1)


async def _applied(db_path: Path) -> dict[str, str]:
    if not db_path.exists():
        return {}
    async with aiosqlite.connect(db_path) as conn:
        return await get_applied_migrations(conn)


def cmd_status(args: argparse.Namespace) -> None:
    db_path = _db_path(args)
    applied = asyncio.run(_applied(db_path))

    print(f"Database: {db_path}")
    for migration in discover_migrations():
        if migration.version not in applied:
            state = "pending"
        elif applied[migration.version] != migration.checksum:
            state = "applied (checksum changed)"
        else:
            state = "applied"
        print(f"  v{migration.version} {migration.name}: {state}")


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "smsreminder.api.main:app",
        host=args.host or settings.api.host,
        port=args.port or settings.api.port,
        reload=args.reload,
        workers=args.workers,
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="SMS reminder management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # migrate
    p_migrate = sub.add_parser("migrate", help="Apply pending migrations")
    p_migrate.add_argument("--db", help="Database path (default: from settings)")
    p_migrate.add_argument("--no-backup", action="store_true", help="Skip the pre-migration backup")
    p_migrate.set_defaults(func=cmd_migrate)

    # status
    p_status = sub.add_parser("status", help="Show migration status")
    p_status.add_argument("--db", help="Database path (default: from settings)")
    p_status.set_defaults(func=cmd_status)

    # serve
    p_serve = sub.add_parser("serve", help="Run the API server")
    p_serve.add_argument("--host", default=None, help="Bind host (default: API_HOST)")
    p_serve.add_argument("--port", type=int, default=None, help="Bind port (default: API_PORT)")
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    p_serve.add_argument("--workers", type=int, default=1, help="Number of uvicorn workers")
    p_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    configure_logging()
    args.func(args)


if __name__ == "__main__":
    main()
