"""
Migration runner for versioned schema changes of the state store.

Migration modules live next to this file and are named ``NNN_name.py``
(e.g. 001_mapping_sync_stamp.py). Each one defines:
- VERSION: int
- NAME: str
- upgrade(conn) -> None
- downgrade(conn) -> None  (optional)
"""

import importlib
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

PACKAGE = __name__.rsplit(".", 1)[0]


@dataclass
class Migration:
    """One schema step."""

    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]
    downgrade: Callable[[sqlite3.Connection], None] | None


def get_all_migrations() -> list[Migration]:
    """Discover migration modules, sorted by version."""
    migrations = []
    for py_file in sorted(Path(__file__).parent.glob("[0-9][0-9][0-9]_*.py")):
        module = importlib.import_module(f"{PACKAGE}.{py_file.stem}")
        migrations.append(
            Migration(
                version=module.VERSION,
                name=module.NAME,
                upgrade=module.upgrade,
                downgrade=getattr(module, "downgrade", None),
            )
        )
    return sorted(migrations, key=lambda m: m.version)


class MigrationRunner:
    """
    Applies pending migrations in version order.

    Applied versions are recorded in a ``migrations`` table.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
        """
        )
        self.conn.commit()

    def get_applied_versions(self) -> set[int]:
        """Versions already applied."""
        return {row[0] for row in self.conn.execute("SELECT version FROM migrations")}

    def apply(self, migration: Migration) -> None:
        """Apply one migration and record it, atomically."""
        logger.info(f"Applying migration {migration.version}: {migration.name}")
        try:
            migration.upgrade(self.conn)
            self.conn.execute(
                "INSERT INTO migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (
                    migration.version,
                    migration.name,
                    datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                ),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            logger.error(f"Migration {migration.version} ({migration.name}) failed")
            raise

    def rollback(self, migration: Migration) -> None:
        """Undo one migration."""
        if migration.downgrade is None:
            raise NotImplementedError(
                f"Migration {migration.version} ({migration.name}) does not support rollback"
            )
        logger.info(f"Rolling back migration {migration.version}: {migration.name}")
        try:
            migration.downgrade(self.conn)
            self.conn.execute("DELETE FROM migrations WHERE version = ?", (migration.version,))
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def run_pending(self) -> list[int]:
        """Apply every migration not yet applied. Returns the applied versions."""
        applied = self.get_applied_versions()
        pending = [m for m in get_all_migrations() if m.version not in applied]

        for migration in pending:
            self.apply(migration)

        if pending:
            logger.info(f"Applied {len(pending)} migrations: {[m.version for m in pending]}")
        return [m.version for m in pending]
