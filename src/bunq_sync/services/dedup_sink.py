"""Idempotent bulk insert of transaction candidates.

Existing rows in the batch's date range are fetched once, fingerprinted,
and only candidates with an unseen fingerprint are inserted, in one
statement. Duplicates inside the batch itself collapse to the first
occurrence. This is best-effort dedup, not a uniqueness constraint; see
``schemas.fingerprint`` for the collision caveat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..schemas.fingerprint import Fingerprint
from ..schemas.payments import TransactionCandidate

if TYPE_CHECKING:
    from ..state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class DedupResult:
    """Counts of one insert_new call."""

    inserted: int
    skipped: int
    inserted_candidates: list[TransactionCandidate]


class DedupSink:
    """Inserts only candidates not already stored."""

    def __init__(self, store: StateStore) -> None:
        self.store = store

    def insert_new(self, candidates: list[TransactionCandidate]) -> DedupResult:
        if not candidates:
            return DedupResult(inserted=0, skipped=0, inserted_candidates=[])

        dates = [c.date for c in candidates]
        date_from, date_to = min(dates), max(dates)

        seen: set[Fingerprint] = set()
        by_household: dict[str, set[str]] = {}
        for c in candidates:
            by_household.setdefault(c.household_id, set()).add(c.account_id)

        for household_id, account_ids in by_household.items():
            rows = self.store.find_transaction_keys(household_id, account_ids, date_from, date_to)
            seen.update(Fingerprint.of_row(r) for r in rows)

        fresh: list[TransactionCandidate] = []
        for candidate in candidates:
            fingerprint = Fingerprint.of_candidate(candidate)
            if fingerprint in seen:
                continue
            seen.add(fingerprint)
            fresh.append(candidate)

        inserted = self.store.insert_transactions([c.to_row() for c in fresh])
        skipped = len(candidates) - inserted

        logger.debug(
            "Dedup %s..%s: %d inserted, %d skipped", date_from, date_to, inserted, skipped
        )
        return DedupResult(inserted=inserted, skipped=skipped, inserted_candidates=fresh)
