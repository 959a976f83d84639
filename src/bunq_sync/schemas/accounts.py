"""
Monetary account normalization.

bunq returns each monetary account as a one-key object whose key names the
account subtype (``{"MonetaryAccountBank": {...}}``). This module maps every
known subtype onto one ``RemoteAccount`` shape. Unknown subtypes yield an
all-None record instead of an error, so a new account kind on the provider
side never breaks discovery of the known ones.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

# Known subtypes in resolution order, mapped to their short type name
ACCOUNT_VARIANTS: tuple[tuple[str, str], ...] = (
    ("MonetaryAccountBank", "bank"),
    ("MonetaryAccountSavings", "savings"),
    ("MonetaryAccountJoint", "joint"),
    ("MonetaryAccountCard", "card"),
    ("MonetaryAccountExternal", "external"),
    ("MonetaryAccountInvestment", "investment"),
)


@dataclass
class RemoteAccount:
    """Canonical view of one bunq monetary account."""

    type: str | None = None
    remote_id: int | None = None
    status: str | None = None
    description: str | None = None
    iban: str | None = None
    balance: Decimal | None = None
    currency: str | None = None

    @property
    def is_known(self) -> bool:
        return self.type is not None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        data = asdict(self)
        data["balance"] = float(self.balance) if self.balance is not None else None
        return data


def extract_iban(aliases: Any) -> str | None:
    """Return the value of the alias tagged ``IBAN``, if any."""
    if not isinstance(aliases, list):
        return None
    for alias in aliases:
        if isinstance(alias, dict) and alias.get("type") == "IBAN":
            return alias.get("value")
    return None


def _parse_balance(balance: Any) -> tuple[Decimal | None, str | None]:
    if not isinstance(balance, dict):
        return None, None
    currency = balance.get("currency")
    try:
        value = Decimal(str(balance.get("value")))
    except (InvalidOperation, ValueError):
        return None, currency
    return value, currency


def _parse_id(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_account(item: dict) -> RemoteAccount:
    """Map one tagged monetary-account object to a RemoteAccount."""
    if not isinstance(item, dict):
        return RemoteAccount()

    for tag, account_type in ACCOUNT_VARIANTS:
        account = item.get(tag)
        if not isinstance(account, dict):
            continue

        balance, currency = _parse_balance(account.get("balance"))
        return RemoteAccount(
            type=account_type,
            remote_id=_parse_id(account.get("id")),
            status=account.get("status"),
            description=account.get("description"),
            iban=extract_iban(account.get("alias")),
            balance=balance,
            currency=currency or account.get("currency"),
        )

    return RemoteAccount()


def normalize_accounts(items: list[dict]) -> list[RemoteAccount]:
    """Normalize a full monetary-account listing, preserving order."""
    return [normalize_account(item) for item in items]
