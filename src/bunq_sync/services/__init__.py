"""
Sync services: identity bootstrap, session guard, account discovery,
payment paging, ingestion mapping, dedup insert and the orchestrator.
"""

from .account_catalog import AccountCatalog
from .bank_sync import (
    BankSyncError,
    BankSyncService,
    ConnectionNotFoundError,
    InvalidRequestError,
    MappingResult,
    SyncMode,
    SyncResult,
    SyncRunResult,
    client_factory_from_config,
)
from .dedup_sink import DedupResult, DedupSink
from .identity import IdentityBootstrap, IdentityBootstrapError
from .ingestion import (
    CategoryResolutionError,
    DefaultSubcategories,
    IngestionMapper,
    resolve_default_subcategories,
)
from .payment_pager import PaymentPager, filter_since
from .session_guard import SessionGuard, SessionRenewalError

__all__ = [
    "AccountCatalog",
    "BankSyncError",
    "BankSyncService",
    "ConnectionNotFoundError",
    "InvalidRequestError",
    "MappingResult",
    "SyncMode",
    "SyncResult",
    "SyncRunResult",
    "client_factory_from_config",
    "DedupResult",
    "DedupSink",
    "IdentityBootstrap",
    "IdentityBootstrapError",
    "CategoryResolutionError",
    "DefaultSubcategories",
    "IngestionMapper",
    "resolve_default_subcategories",
    "PaymentPager",
    "filter_since",
    "SessionGuard",
    "SessionRenewalError",
]
