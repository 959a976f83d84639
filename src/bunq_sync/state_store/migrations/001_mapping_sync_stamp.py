"""
Migration 001: Add last_synced_at to account_mappings.

Records when a mapping last committed a page, next to its payment watermark.
"""

import sqlite3

VERSION = 1
NAME = "mapping_sync_stamp"


def upgrade(conn: sqlite3.Connection) -> None:
    """Add last_synced_at column."""
    columns = {row[1] for row in conn.execute("PRAGMA table_info(account_mappings)")}
    if "last_synced_at" not in columns:
        conn.execute("ALTER TABLE account_mappings ADD COLUMN last_synced_at TEXT")


def downgrade(conn: sqlite3.Connection) -> None:
    """Drop last_synced_at column (SQLite >= 3.35)."""
    conn.execute("ALTER TABLE account_mappings DROP COLUMN last_synced_at")
