"""
Transaction fingerprints (dedup key).

bunq payment ids are not stored, so "already ingested" is decided by
comparing a composite key over the stored columns:

    (account_id, date, amount, description, counterparty_alias)

The key is compared by equality against a fetched set of existing rows;
it is never hashed or stored.

Known limitation: two genuinely distinct payments with the same account,
date, amount, description and counterparty alias produce the same
fingerprint, and only one of them is imported.

Payments with an unreadable timestamp are dated the day they are imported,
so such a payment seen again on a later day gets a different fingerprint and
is imported again. Undated payments past the date cutoff are dropped before
mapping (see ``services.payment_pager.filter_since``).
"""

from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple

from .payments import TransactionCandidate


def _normalize_amount(amount: Decimal | str | float | int) -> str:
    """Amount as a two-decimal string with dot separator."""
    if isinstance(amount, str):
        amount = amount.strip().replace(",", ".")
    try:
        value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    except InvalidOperation as e:
        raise ValueError(f"Cannot normalize amount: {amount!r}") from e
    return f"{value:.2f}"


def _normalize_string(value: str | None) -> str:
    """Strip surrounding whitespace; None becomes empty."""
    if not value:
        return ""
    return value.strip()


class Fingerprint(NamedTuple):
    """Composite identity of a stored or candidate transaction."""

    account_id: str
    date: str
    amount: str
    description: str
    counterparty_alias: str

    @classmethod
    def build(
        cls,
        account_id: Any,
        date: str,
        amount: Decimal | str | float | int,
        description: str | None,
        counterparty_alias: str | None,
    ) -> "Fingerprint":
        return cls(
            account_id=str(account_id),
            date=(date or "").strip()[:10],
            amount=_normalize_amount(amount),
            description=_normalize_string(description),
            counterparty_alias=_normalize_string(counterparty_alias),
        )

    @classmethod
    def of_candidate(cls, candidate: TransactionCandidate) -> "Fingerprint":
        return cls.build(
            candidate.account_id,
            candidate.date,
            candidate.amount,
            candidate.description,
            candidate.counterparty_alias,
        )

    @classmethod
    def of_row(cls, row: dict[str, Any]) -> "Fingerprint":
        """From a stored transactions row (mapping access)."""
        return cls.build(
            row["account_id"],
            row["date"],
            row["amount"],
            row["description"],
            row["counterparty_alias"],
        )
