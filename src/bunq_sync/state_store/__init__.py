"""
State Store (SQLite-based).

Lightweight persistent DB standing in for the household ledger:
- bunq connections (one per household)
- Account mappings and their payment watermark
- Categories/subcategories consulted for default categories
- Imported transactions
"""

from .sqlite_store import (
    AccountMappingRecord,
    ConnectionRecord,
    StateStore,
    SubcategoryRecord,
)

__all__ = [
    "StateStore",
    "ConnectionRecord",
    "AccountMappingRecord",
    "SubcategoryRecord",
]
