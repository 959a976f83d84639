"""Mapping bunq payments onto local transaction candidates.

The payment's amount sign is kept as-is: bunq encodes direction in the
sign. Negative amounts get the household's default expense subcategory,
everything else the default income subcategory.

Defaults are resolved once per household per run. If either direction has
no usable subcategory the whole household's sync is refused; guessing a
category for money is worse than not importing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from ..schemas.payments import RemotePayment, TransactionCandidate

if TYPE_CHECKING:
    from ..state_store import SubcategoryRecord

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "bunq betaling"

# Loose category-type markers, English and Dutch
EXPENSE_TYPE_MARKERS = ("expense", "uitgave")
INCOME_TYPE_MARKERS = ("income", "inkomst")


class CategoryResolutionError(Exception):
    """No default subcategory could be found for a direction."""

    def __init__(self, household_id: str, direction: str, preferred: tuple[str, str]):
        self.household_id = household_id
        self.direction = direction
        super().__init__(
            f"No default {direction} subcategory for household {household_id}: "
            f"create subcategory '{preferred[1]}' under category '{preferred[0]}' "
            f"or any subcategory under a category of type {direction}"
        )


@dataclass(frozen=True)
class DefaultSubcategories:
    expense_id: str
    income_id: str


def _same(a: str | None, b: str | None) -> bool:
    return (a or "").strip().casefold() == (b or "").strip().casefold()


def _pick(
    subcategories: list[SubcategoryRecord],
    preferred: tuple[str, str],
    markers: tuple[str, ...],
) -> SubcategoryRecord | None:
    for sub in subcategories:
        if _same(sub.category_name, preferred[0]) and _same(sub.name, preferred[1]):
            return sub
    for sub in subcategories:
        category_type = (sub.category_type or "").casefold()
        if any(marker in category_type for marker in markers):
            return sub
    return None


def resolve_default_subcategories(
    household_id: str,
    subcategories: Iterable[SubcategoryRecord],
    expense_preferred: tuple[str, str] = ("Overig", "Overig"),
    income_preferred: tuple[str, str] = ("Inkomsten", "Overig"),
) -> DefaultSubcategories:
    """Pick one expense and one income subcategory for a household.

    Order: the preferred (category, subcategory) name pair first, then the
    first subcategory whose parent category type contains an expense or
    income marker.

    Raises:
        CategoryResolutionError: if a direction has no candidate
    """
    subcategories = list(subcategories)

    expense = _pick(subcategories, expense_preferred, EXPENSE_TYPE_MARKERS)
    if expense is None:
        raise CategoryResolutionError(household_id, "expense", expense_preferred)

    income = _pick(subcategories, income_preferred, INCOME_TYPE_MARKERS)
    if income is None:
        raise CategoryResolutionError(household_id, "income", income_preferred)

    logger.debug(
        "Household %s defaults: expense=%s/%s income=%s/%s",
        household_id,
        expense.category_name,
        expense.name,
        income.category_name,
        income.name,
    )
    return DefaultSubcategories(expense_id=expense.id, income_id=income.id)


class IngestionMapper:
    """Converts RemotePayments into TransactionCandidates for one household."""

    def __init__(
        self,
        household_id: str,
        defaults: DefaultSubcategories,
        today: date | None = None,
    ) -> None:
        self.household_id = household_id
        self.defaults = defaults
        self.today = today

    def map(self, payment: RemotePayment, account_id: str) -> TransactionCandidate:
        tx_date = payment.date
        if tx_date is None:
            tx_date = (self.today or date.today()).isoformat()
            logger.warning(
                "Payment %s has unreadable timestamp %r, dating it %s",
                payment.id,
                payment.created,
                tx_date,
            )

        description = (payment.description or "").strip() or DEFAULT_DESCRIPTION
        subcategory_id = self.defaults.expense_id if payment.amount < 0 else self.defaults.income_id

        return TransactionCandidate(
            household_id=self.household_id,
            account_id=account_id,
            date=tx_date,
            description=description,
            amount=payment.amount,
            counterparty_iban=payment.counterparty_iban,
            counterparty_alias=payment.counterparty_name,
            subcategory_id=subcategory_id,
            remote_payment_id=payment.id,
        )

    def map_all(self, payments: Iterable[RemotePayment], account_id: str) -> list[TransactionCandidate]:
        return [self.map(p, account_id) for p in payments]
