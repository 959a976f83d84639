"""bunq synchronization orchestrator.

Entry point for the three operating modes:

- setup: run the identity handshake for one household
- accounts: list the household's bunq accounts so an operator can map them
- auto: import payments for every mapped account (the scheduled mode)

Households are processed one at a time, and everything for one household
runs sequentially. A failure inside one account mapping is logged and
recorded and the remaining mappings still run; a session or category
failure aborts that household.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..bunq_client import BunqClient, BunqSession, KeyMaterial
from ..config import DATE_RE, DEFAULT_DATE_FROM, ConfigValidationError
from ..schemas.accounts import RemoteAccount
from ..schemas.payments import RemotePayment
from .account_catalog import AccountCatalog
from .dedup_sink import DedupSink
from .identity import ClientFactory, IdentityBootstrap
from .ingestion import IngestionMapper, resolve_default_subcategories
from .payment_pager import DEFAULT_MAX_ITEMS, DEFAULT_PAGE_SIZE, PaymentPager, filter_since
from .session_guard import SessionGuard

if TYPE_CHECKING:
    from ..config import BunqConfig, Config
    from ..state_store import AccountMappingRecord, ConnectionRecord, StateStore

logger = logging.getLogger(__name__)


class BankSyncError(Exception):
    """Base exception for orchestrator-level failures."""

    pass


class InvalidRequestError(BankSyncError):
    """Missing or invalid input or configuration; nothing was contacted."""

    pass


class ConnectionNotFoundError(BankSyncError):
    """The household has no stored bunq connection."""

    def __init__(self, household_id: str):
        self.household_id = household_id
        super().__init__(
            f"No bunq connection found for household {household_id}. Run setup first."
        )


class SyncMode(str, Enum):
    """Operating mode of one invocation."""

    SETUP = "setup"
    ACCOUNTS = "accounts"
    AUTO = "auto"

    @classmethod
    def parse(cls, value: str | None) -> "SyncMode":
        """Parse a mode name; None means auto. Accepts the legacy names."""
        if value is None or value == "":
            return cls.AUTO
        if not isinstance(value, str):
            raise InvalidRequestError(f"mode must be a string, got: {value!r}")
        normalized = MODE_ALIASES.get(value, value)
        try:
            return cls(normalized)
        except ValueError as e:
            valid = ", ".join([m.value for m in cls] + list(MODE_ALIASES))
            raise InvalidRequestError(f"Unknown mode '{value}' (expected one of: {valid})") from e


MODE_ALIASES = {"list-accounts": "accounts", "poll": "auto"}


def validate_date(value: str, name: str = "date_from") -> str:
    """Return ``value`` if it is a real YYYY-MM-DD date."""
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise InvalidRequestError(f"{name} must be YYYY-MM-DD, got: {value!r}")
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise InvalidRequestError(f"{name} is not a valid date: {value!r}") from e
    return value


def client_factory_from_config(config: BunqConfig) -> ClientFactory:
    """Build a client factory bound to the configured endpoint and headers."""

    def factory(keys: KeyMaterial) -> BunqClient:
        return BunqClient(
            base_url=config.base_url,
            keys=keys,
            timeout=config.timeout_seconds,
            language=config.language,
            region=config.region,
            geolocation=config.geolocation,
            user_agent=config.user_agent,
        )

    return factory


@dataclass
class MappingResult:
    """Outcome of syncing one account mapping."""

    mapping_id: int
    account_id: str
    bunq_monetary_account_id: int
    fetched: int = 0
    imported: int = 0
    skipped: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mapping_id": self.mapping_id,
            "account_id": self.account_id,
            "bunq_monetary_account_id": self.bunq_monetary_account_id,
            "fetched": self.fetched,
            "imported": self.imported,
            "skipped": self.skipped,
            "error": self.error,
        }


@dataclass
class SyncResult:
    """Outcome of syncing one household."""

    household_id: str
    date_from: str
    mappings: list[MappingResult] = field(default_factory=list)
    # Only set when the household has nothing mapped yet
    accounts: list[RemoteAccount] | None = None

    @property
    def imported(self) -> int:
        return sum(m.imported for m in self.mappings)

    @property
    def errors(self) -> list[str]:
        return [
            f"account {m.bunq_monetary_account_id}: {m.error}" for m in self.mappings if m.error
        ]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ok": True,
            "household_id": self.household_id,
            "imported": self.imported,
            "date_from": self.date_from,
            "results": [m.to_dict() for m in self.mappings],
            "errors": self.errors,
        }
        if self.accounts is not None:
            data["accounts"] = [a.to_dict() for a in self.accounts]
            data["message"] = "No account mappings configured; map accounts to start syncing"
        return data


@dataclass
class SyncRunResult:
    """Outcome of a scheduled run over all households."""

    date_from: str
    households: list[SyncResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    message: str | None = None

    @property
    def imported(self) -> int:
        return sum(h.imported for h in self.households)

    @property
    def errors(self) -> list[str]:
        errors = [f"household {hid}: {msg}" for hid, msg in self.failures.items()]
        for h in self.households:
            errors.extend(f"household {h.household_id}, {e}" for e in h.errors)
        return errors

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ok": True,
            "imported": self.imported,
            "date_from": self.date_from,
            "households": [h.to_dict() for h in self.households],
            "errors": self.errors,
        }
        if self.message:
            data["message"] = self.message
        return data


class BankSyncService:
    """Drives setup, account discovery and payment import per household.

    All secrets and settings are constructor arguments; nothing is read
    from the environment here.
    """

    def __init__(
        self,
        store: StateStore,
        api_key: str,
        client_factory: ClientFactory,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_items: int = DEFAULT_MAX_ITEMS,
        default_date_from: str = DEFAULT_DATE_FROM,
        expense_preferred: tuple[str, str] = ("Overig", "Overig"),
        income_preferred: tuple[str, str] = ("Inkomsten", "Overig"),
        device_description: str = "BudgetFlow",
        permitted_ips: list[str] | None = None,
    ) -> None:
        if not api_key:
            raise InvalidRequestError("BUNQ_API_KEY not configured")

        self.store = store
        self.api_key = api_key
        self.client_factory = client_factory
        self.page_size = page_size
        self.max_items = max_items
        self.default_date_from = validate_date(default_date_from, "default_date_from")
        self.expense_preferred = expense_preferred
        self.income_preferred = income_preferred
        self.device_description = device_description
        self.permitted_ips = permitted_ips or ["*"]

        self.guard = SessionGuard(store, api_key)
        self.sink = DedupSink(store)

    @classmethod
    def from_config(cls, config: Config, store: StateStore) -> "BankSyncService":
        errors = config.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))
        return cls(
            store=store,
            api_key=config.bunq.api_key,
            client_factory=client_factory_from_config(config.bunq),
            page_size=config.sync.page_size,
            max_items=config.sync.max_items,
            default_date_from=config.sync.default_date_from,
            expense_preferred=config.categories.expense_preferred,
            income_preferred=config.categories.income_preferred,
            device_description=config.bunq.device_description,
            permitted_ips=config.bunq.permitted_ips,
        )

    # Modes

    def setup(self, household_id: str | None) -> ConnectionRecord:
        """Bootstrap a household's bunq identity. Returns the stored connection."""
        household_id = self._require_household(household_id, "setup")
        bootstrap = IdentityBootstrap(
            self.client_factory,
            self.store,
            self.api_key,
            device_description=self.device_description,
            permitted_ips=self.permitted_ips,
        )
        return bootstrap.bootstrap(household_id)

    def discover_accounts(self, household_id: str | None) -> list[RemoteAccount]:
        """Normalized bunq accounts of a household, for manual mapping."""
        household_id = self._require_household(household_id, "accounts")
        connection = self._require_connection(household_id)
        client, session = self._open(connection)
        return AccountCatalog(client).list_accounts(session)

    def sync(self, household_id: str | None, date_from: str | None = None) -> SyncResult:
        """Import new payments for every mapped account of one household."""
        household_id = self._require_household(household_id, "sync")
        date_from = validate_date(date_from) if date_from else self.default_date_from
        connection = self._require_connection(household_id)
        return self._sync_connection(connection, date_from)

    def sync_all(self, date_from: str | None = None) -> SyncRunResult:
        """Scheduled run: every household with mappings, one after another."""
        date_from = validate_date(date_from) if date_from else self.default_date_from
        run = SyncRunResult(date_from=date_from)

        connections = self.store.list_connections()
        if not connections:
            run.message = "No connections configured"
            return run

        for connection in connections:
            if not self.store.list_account_mappings(connection.id):
                logger.info("Household %s has no account mappings, skipping", connection.household_id)
                continue
            try:
                run.households.append(self._sync_connection(connection, date_from))
            except Exception as e:
                logger.exception("Sync failed for household %s", connection.household_id)
                run.failures[connection.household_id] = str(e)

        return run

    def run(
        self,
        mode: SyncMode | str | None,
        household_id: str | None = None,
        date_from: str | None = None,
    ) -> dict[str, Any]:
        """Dispatch one invocation and return its JSON-ready payload."""
        mode = mode if isinstance(mode, SyncMode) else SyncMode.parse(mode)

        if mode is SyncMode.SETUP:
            connection = self.setup(household_id)
            return {"ok": True, "user_id": connection.session_user_id}

        if mode is SyncMode.ACCOUNTS:
            accounts = self.discover_accounts(household_id)
            return {"ok": True, "accounts": [a.to_dict() for a in accounts]}

        if household_id:
            return self.sync(household_id, date_from).to_dict()
        return self.sync_all(date_from).to_dict()

    # Internals

    def _require_household(self, household_id: str | None, mode: str) -> str:
        if household_id is not None and not isinstance(household_id, str):
            raise InvalidRequestError(f"household_id must be a string, got: {household_id!r}")
        if not household_id or not str(household_id).strip():
            raise InvalidRequestError(f"household_id required for {mode}")
        return str(household_id).strip()

    def _require_connection(self, household_id: str) -> ConnectionRecord:
        connection = self.store.get_connection(household_id)
        if connection is None:
            raise ConnectionNotFoundError(household_id)
        return connection

    def _open(self, connection: ConnectionRecord) -> tuple[BunqClient, BunqSession]:
        keys = KeyMaterial.from_private_pem(connection.private_key_pem)
        client = self.client_factory(keys)
        return client, self.guard.ensure_valid_session(connection, client)

    def _sync_connection(self, connection: ConnectionRecord, date_from: str) -> SyncResult:
        result = SyncResult(household_id=connection.household_id, date_from=date_from)
        client, session = self._open(connection)

        mappings = self.store.list_account_mappings(connection.id)
        if not mappings:
            result.accounts = AccountCatalog(client).list_accounts(session)
            return result

        defaults = resolve_default_subcategories(
            connection.household_id,
            self.store.list_subcategories(connection.household_id),
            self.expense_preferred,
            self.income_preferred,
        )
        mapper = IngestionMapper(connection.household_id, defaults)
        pager = PaymentPager(client, page_size=self.page_size, max_items=self.max_items)

        for mapping in mappings:
            outcome = MappingResult(
                mapping_id=mapping.id,
                account_id=mapping.account_id,
                bunq_monetary_account_id=mapping.bunq_monetary_account_id,
            )
            try:
                self._sync_mapping(mapping, session, pager, mapper, date_from, outcome)
            except Exception as e:
                logger.exception(
                    "Error syncing bunq account %s for household %s",
                    mapping.bunq_monetary_account_id,
                    connection.household_id,
                )
                outcome.error = str(e)
            result.mappings.append(outcome)

        logger.info(
            "Household %s: imported %d payment(s) since %s across %d mapping(s)",
            connection.household_id,
            result.imported,
            date_from,
            len(mappings),
        )
        return result

    def _sync_mapping(
        self,
        mapping: AccountMappingRecord,
        session: BunqSession,
        pager: PaymentPager,
        mapper: IngestionMapper,
        date_from: str,
        outcome: MappingResult,
    ) -> None:
        """Page, map and commit one mapping; each page is committed on its own."""
        for page in pager.iter_pages(session, mapping.bunq_monetary_account_id, date_from):
            outcome.fetched += len(page)
            in_range: list[RemotePayment] = filter_since(page, date_from)
            if not in_range:
                continue

            candidates = mapper.map_all(in_range, mapping.account_id)
            committed = self.sink.insert_new(candidates)
            outcome.imported += committed.inserted
            outcome.skipped += committed.skipped

            newest = max(
                (c.remote_payment_id for c in committed.inserted_candidates if c.remote_payment_id is not None),
                default=None,
            )
            self.store.advance_mapping_watermark(mapping.id, newest)

        logger.info(
            "bunq account %s: %d fetched, %d imported, %d already present",
            mapping.bunq_monetary_account_id,
            outcome.fetched,
            outcome.imported,
            outcome.skipped,
        )
