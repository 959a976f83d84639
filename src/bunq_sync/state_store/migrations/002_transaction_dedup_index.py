"""
Migration 002: Index transactions for the dedup range query.

The sync worker looks up existing rows by household, account and date
range before every insert.
"""

import sqlite3

VERSION = 2
NAME = "transaction_dedup_index"


def upgrade(conn: sqlite3.Connection) -> None:
    """Create the lookup index."""
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_transactions_account_date
        ON transactions(household_id, account_id, date)
    """
    )


def downgrade(conn: sqlite3.Connection) -> None:
    """Drop the lookup index."""
    conn.execute("DROP INDEX IF EXISTS idx_transactions_account_date")
