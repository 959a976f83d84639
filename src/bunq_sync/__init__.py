"""
bunq → Household Ledger Synchronization

A background worker that signs its requests against the bunq API, keeps a
renewable session per household, pages backward through payment history
and ingests each payment into the local ledger exactly once.
"""

__version__ = "0.1.0"
