"""
SQLite-based state store implementation.

Tables:
- bank_connections: One bunq credential/key bundle per household
- account_mappings: Local account ↔ bunq monetary account links
- accounts, categories, subcategories: Minimal ledger shapes used by sync
- transactions: Imported ledger rows
"""

import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ConnectionRecord:
    """Persisted bunq credentials for one household.

    Key PEMs are cleartext here; encryption at rest is the job of the
    storage deployment, not of this worker.
    """

    id: int
    household_id: str
    private_key_pem: str
    public_key_pem: str
    installation_token: str | None
    server_public_key: str | None
    device_server_id: int | None
    session_token: str | None
    session_user_id: int | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ConnectionRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            household_id=row["household_id"],
            private_key_pem=row["private_key_pem"],
            public_key_pem=row["public_key_pem"],
            installation_token=row["installation_token"],
            server_public_key=row["server_public_key"],
            device_server_id=row["device_server_id"],
            session_token=row["session_token"],
            session_user_id=row["session_user_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class AccountMappingRecord:
    """Link between a local account and a bunq monetary account."""

    id: int
    connection_id: int
    account_id: str
    bunq_monetary_account_id: int
    last_payment_id: int | None
    last_synced_at: str | None
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AccountMappingRecord":
        """Create from database row."""
        return cls(
            id=row["id"],
            connection_id=row["connection_id"],
            account_id=row["account_id"],
            bunq_monetary_account_id=row["bunq_monetary_account_id"],
            last_payment_id=row["last_payment_id"],
            last_synced_at=row["last_synced_at"] if "last_synced_at" in row.keys() else None,
            created_at=row["created_at"],
        )


@dataclass
class SubcategoryRecord:
    """A subcategory joined with its parent category."""

    id: str
    name: str
    category_id: str
    category_name: str
    category_type: str


class StateStore:
    """
    SQLite-based state store for the sync worker.

    Provides persistent tracking of:
    - bunq connections (keys, installation, session)
    - Account mappings with their payment watermark
    - Categories/subcategories for default category inference
    - Imported transactions

    Thread-safe for single-writer scenarios.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str, run_migrations: bool = True):
        """
        Initialize state store.

        Args:
            db_path: Path to SQLite database file
            run_migrations: Whether to run pending migrations (default True)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        if run_migrations:
            self._run_migrations()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS bank_connections (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    household_id TEXT NOT NULL UNIQUE,
                    private_key_pem TEXT NOT NULL,
                    public_key_pem TEXT NOT NULL,
                    installation_token TEXT,
                    server_public_key TEXT,
                    device_server_id INTEGER,
                    session_token TEXT,
                    session_user_id INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    household_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    iban TEXT,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS account_mappings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    connection_id INTEGER NOT NULL,
                    account_id TEXT NOT NULL,
                    bunq_monetary_account_id INTEGER NOT NULL,
                    last_payment_id INTEGER,
                    created_at TEXT NOT NULL,
                    UNIQUE (connection_id, bunq_monetary_account_id),
                    FOREIGN KEY (connection_id) REFERENCES bank_connections(id),
                    FOREIGN KEY (account_id) REFERENCES accounts(id)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    household_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,  -- e.g. uitgaven/inkomsten or expense/income
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS subcategories (
                    id TEXT PRIMARY KEY,
                    category_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (category_id) REFERENCES categories(id)
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    household_id TEXT NOT NULL,
                    account_id TEXT NOT NULL,
                    date TEXT NOT NULL,  -- YYYY-MM-DD
                    description TEXT NOT NULL,
                    amount TEXT NOT NULL,  -- signed, two decimals
                    counterparty_iban TEXT,
                    counterparty_alias TEXT,
                    subcategory_id TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (account_id) REFERENCES accounts(id),
                    FOREIGN KEY (subcategory_id) REFERENCES subcategories(id)
                )
            """
            )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_mappings_connection ON account_mappings(connection_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_categories_household ON categories(household_id)"
            )

            conn.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)", (self.SCHEMA_VERSION,)
            )

    def _run_migrations(self) -> None:
        """Run pending database migrations."""
        from .migrations import MigrationRunner

        conn = self._get_connection()
        try:
            runner = MigrationRunner(conn)
            runner.run_pending()
        finally:
            conn.close()

    # Connection methods

    def upsert_connection(
        self,
        household_id: str,
        private_key_pem: str,
        public_key_pem: str,
        installation_token: str,
        server_public_key: str,
        device_server_id: int,
        session_token: str,
        session_user_id: int,
    ) -> ConnectionRecord:
        """Insert or replace the connection of a household (one per household)."""
        now = _now()

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO bank_connections
                (household_id, private_key_pem, public_key_pem, installation_token,
                 server_public_key, device_server_id, session_token, session_user_id,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(household_id) DO UPDATE SET
                    private_key_pem = excluded.private_key_pem,
                    public_key_pem = excluded.public_key_pem,
                    installation_token = excluded.installation_token,
                    server_public_key = excluded.server_public_key,
                    device_server_id = excluded.device_server_id,
                    session_token = excluded.session_token,
                    session_user_id = excluded.session_user_id,
                    updated_at = excluded.updated_at
            """,
                (
                    household_id,
                    private_key_pem,
                    public_key_pem,
                    installation_token,
                    server_public_key,
                    device_server_id,
                    session_token,
                    session_user_id,
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT * FROM bank_connections WHERE household_id = ?", (household_id,)
            ).fetchone()
            return ConnectionRecord.from_row(row)

    def get_connection(self, household_id: str) -> ConnectionRecord | None:
        """Get the connection of a household."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM bank_connections WHERE household_id = ?", (household_id,)
            ).fetchone()
            return ConnectionRecord.from_row(row) if row else None

    def list_connections(self) -> list[ConnectionRecord]:
        """All connections, oldest first."""
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM bank_connections ORDER BY id").fetchall()
            return [ConnectionRecord.from_row(r) for r in rows]

    def update_session(self, connection_id: int, session_token: str, session_user_id: int) -> bool:
        """Store a renewed session. Returns False if the connection is gone."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE bank_connections
                SET session_token = ?, session_user_id = ?, updated_at = ?
                WHERE id = ?
            """,
                (session_token, session_user_id, _now(), connection_id),
            )
            return cursor.rowcount > 0

    # Account and mapping methods

    def add_account(
        self,
        household_id: str,
        name: str,
        iban: str | None = None,
        account_id: str | None = None,
    ) -> str:
        """Create a local account. Returns its id."""
        account_id = account_id or str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO accounts (id, household_id, name, iban, created_at) VALUES (?, ?, ?, ?, ?)",
                (account_id, household_id, name, iban, _now()),
            )
        return account_id

    def get_account(self, account_id: str) -> dict | None:
        """Get a local account as a dict."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
            return dict(row) if row else None

    def add_account_mapping(
        self,
        connection_id: int,
        account_id: str,
        bunq_monetary_account_id: int,
    ) -> int:
        """Link a local account to a bunq monetary account. Returns the mapping id."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO account_mappings
                (connection_id, account_id, bunq_monetary_account_id, created_at)
                VALUES (?, ?, ?, ?)
            """,
                (connection_id, account_id, bunq_monetary_account_id, _now()),
            )
            return cursor.lastrowid or 0

    def list_account_mappings(self, connection_id: int) -> list[AccountMappingRecord]:
        """Mappings of a connection, in creation order."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM account_mappings WHERE connection_id = ? ORDER BY id",
                (connection_id,),
            ).fetchall()
            return [AccountMappingRecord.from_row(r) for r in rows]

    def advance_mapping_watermark(self, mapping_id: int, last_payment_id: int | None) -> None:
        """Stamp a mapping as synced and raise its payment watermark.

        The watermark never decreases.
        """
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE account_mappings
                SET last_payment_id = CASE
                        WHEN ? IS NULL THEN last_payment_id
                        WHEN last_payment_id IS NULL OR last_payment_id < ? THEN ?
                        ELSE last_payment_id
                    END,
                    last_synced_at = ?
                WHERE id = ?
            """,
                (last_payment_id, last_payment_id, last_payment_id, _now(), mapping_id),
            )

    # Category methods

    def add_category(
        self,
        household_id: str,
        name: str,
        type_: str,
        category_id: str | None = None,
    ) -> str:
        """Create a category. Returns its id."""
        category_id = category_id or str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO categories (id, household_id, name, type, created_at) VALUES (?, ?, ?, ?, ?)",
                (category_id, household_id, name, type_, _now()),
            )
        return category_id

    def add_subcategory(self, category_id: str, name: str, subcategory_id: str | None = None) -> str:
        """Create a subcategory. Returns its id."""
        subcategory_id = subcategory_id or str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO subcategories (id, category_id, name, created_at) VALUES (?, ?, ?, ?)",
                (subcategory_id, category_id, name, _now()),
            )
        return subcategory_id

    def list_subcategories(self, household_id: str) -> list[SubcategoryRecord]:
        """All subcategories of a household with their parent category, in creation order."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT s.id, s.name, c.id AS category_id, c.name AS category_name,
                       c.type AS category_type
                FROM subcategories s
                JOIN categories c ON c.id = s.category_id
                WHERE c.household_id = ?
                ORDER BY c.rowid, s.rowid
            """,
                (household_id,),
            ).fetchall()
            return [
                SubcategoryRecord(
                    id=r["id"],
                    name=r["name"],
                    category_id=r["category_id"],
                    category_name=r["category_name"],
                    category_type=r["category_type"],
                )
                for r in rows
            ]

    # Transaction methods

    def find_transaction_keys(
        self,
        household_id: str,
        account_ids: Iterable[str],
        date_from: str,
        date_to: str,
    ) -> list[dict[str, Any]]:
        """Fingerprint columns of stored transactions in an inclusive date range."""
        account_ids = list(dict.fromkeys(account_ids))
        if not account_ids:
            return []

        placeholders = ", ".join("?" for _ in account_ids)
        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT account_id, date, amount, description, counterparty_alias
                FROM transactions
                WHERE household_id = ?
                  AND account_id IN ({placeholders})
                  AND date >= ? AND date <= ?
            """,
                (household_id, *account_ids, date_from, date_to),
            ).fetchall()
            return [dict(r) for r in rows]

    def insert_transactions(self, rows: list[dict[str, Any]]) -> int:
        """Insert transaction rows in one statement and one SQL transaction."""
        if not rows:
            return 0

        now = _now()
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO transactions
                (household_id, account_id, date, description, amount,
                 counterparty_iban, counterparty_alias, subcategory_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                [
                    (
                        r["household_id"],
                        r["account_id"],
                        r["date"],
                        r["description"],
                        r["amount"],
                        r.get("counterparty_iban"),
                        r.get("counterparty_alias"),
                        r.get("subcategory_id"),
                        now,
                    )
                    for r in rows
                ],
            )
        return len(rows)

    def list_transactions(
        self,
        household_id: str,
        account_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Stored transactions, newest date first."""
        query = "SELECT * FROM transactions WHERE household_id = ?"
        params: list[Any] = [household_id]
        if account_id:
            query += " AND account_id = ?"
            params.append(account_id)
        query += " ORDER BY date DESC, id"

        with self._transaction() as conn:
            return [dict(r) for r in conn.execute(query, params).fetchall()]

    # Statistics

    def get_stats(self) -> dict[str, int]:
        """Row counts for the status command."""
        with self._transaction() as conn:
            stats = {}
            for key, table in (
                ("connections", "bank_connections"),
                ("account_mappings", "account_mappings"),
                ("accounts", "accounts"),
                ("subcategories", "subcategories"),
                ("transactions", "transactions"),
            ):
                stats[key] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            return stats
