"""
Payment records.

RemotePayment is what one bunq ``Payment`` object carries for our purposes.
TransactionCandidate is the local transaction row we would insert for it.
Neither is persisted by itself; the payment id only drives paging.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def date_prefix(timestamp: Any) -> str | None:
    """``YYYY-MM-DD`` prefix of a bunq timestamp, or None when malformed.

    bunq timestamps look like ``2024-03-01 14:22:05.123456``.
    """
    if not isinstance(timestamp, str):
        return None
    match = _DATE_PREFIX_RE.match(timestamp.strip())
    if not match:
        return None
    try:
        date.fromisoformat(match.group(1))
    except ValueError:
        return None
    return match.group(1)


def _parse_amount(amount: Any) -> tuple[Decimal, str | None]:
    if not isinstance(amount, dict):
        return Decimal("0"), None
    try:
        value = Decimal(str(amount.get("value", "0")))
    except (InvalidOperation, ValueError):
        value = Decimal("0")
    return value, amount.get("currency")


def resolve_counterparty(payment: dict) -> tuple[str | None, str | None]:
    """Counterparty (iban, display name) of a payment.

    The label object in ``counterparty_alias`` is preferred. When it is
    absent, the pointer form in ``counterparty_pointer``
    (``{"type": "IBAN", "value": ..., "name": ...}``) is used. Either part
    may be None.
    """
    label = payment.get("counterparty_alias")
    if isinstance(label, dict) and (label.get("iban") or label.get("display_name")):
        return label.get("iban"), label.get("display_name")

    pointer = payment.get("counterparty_pointer")
    if isinstance(pointer, dict):
        iban = pointer.get("value") if pointer.get("type") == "IBAN" else None
        return iban, pointer.get("name")

    return None, None


@dataclass
class RemotePayment:
    """One bunq payment as fetched from a page."""

    id: int
    amount: Decimal
    currency: str | None
    created: str | None
    description: str | None
    counterparty_iban: str | None = None
    counterparty_name: str | None = None

    @property
    def date(self) -> str | None:
        return date_prefix(self.created)

    @classmethod
    def from_api(cls, payment: dict) -> "RemotePayment":
        """Build from the inner object of a ``{"Payment": {...}}`` item."""
        amount, currency = _parse_amount(payment.get("amount"))
        iban, name = resolve_counterparty(payment)
        return cls(
            id=int(payment["id"]),
            amount=amount,
            currency=currency,
            created=payment.get("created"),
            description=payment.get("description"),
            counterparty_iban=iban,
            counterparty_name=name,
        )


@dataclass
class TransactionCandidate:
    """A local transaction row awaiting the insert/skip decision."""

    household_id: str
    account_id: str
    date: str
    description: str
    amount: Decimal
    counterparty_iban: str | None
    counterparty_alias: str | None
    subcategory_id: str
    # Transient; never stored
    remote_payment_id: int | None = None

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the transactions table."""
        return {
            "household_id": self.household_id,
            "account_id": self.account_id,
            "date": self.date,
            "description": self.description,
            "amount": f"{self.amount:.2f}",
            "counterparty_iban": self.counterparty_iban,
            "counterparty_alias": self.counterparty_alias,
            "subcategory_id": self.subcategory_id,
        }
