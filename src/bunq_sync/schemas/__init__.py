"""
Data shapes exchanged between the bunq client, the services and the store.
"""

from .accounts import RemoteAccount, extract_iban, normalize_account, normalize_accounts
from .fingerprint import Fingerprint
from .payments import RemotePayment, TransactionCandidate, date_prefix, resolve_counterparty

__all__ = [
    "RemoteAccount",
    "extract_iban",
    "normalize_account",
    "normalize_accounts",
    "Fingerprint",
    "RemotePayment",
    "TransactionCandidate",
    "date_prefix",
    "resolve_counterparty",
]
