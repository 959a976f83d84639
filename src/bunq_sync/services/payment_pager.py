"""Backward paging through a monetary account's payment history.

bunq lists payments newest first. Older pages are requested with the id of
the oldest payment seen so far (``older_id``). Paging stops at the first of:

- an empty page
- a page whose oldest payment is dated before ``date_from``
- ``max_items`` payments fetched in total

The last page usually straddles ``date_from``; callers must apply
``filter_since`` to the result.
"""

import logging
from collections.abc import Iterator

from ..bunq_client import BunqClient, BunqSession
from ..schemas.payments import RemotePayment

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200
DEFAULT_MAX_ITEMS = 5000


def filter_since(payments: list[RemotePayment], date_from: str) -> list[RemotePayment]:
    """Keep payments dated on or after ``date_from``.

    ``payments`` is newest first. A payment with an unreadable date is kept
    (the mapper dates it today) unless it follows a payment already dated
    before ``date_from``, in which case it is older than the cutoff too.
    """
    kept: list[RemotePayment] = []
    past_cutoff = False
    for p in payments:
        if p.date is None:
            if not past_cutoff:
                kept.append(p)
        elif p.date >= date_from:
            kept.append(p)
        else:
            past_cutoff = True
    return kept


class PaymentPager:
    """Walks payment pages backward until the date cutoff."""

    def __init__(
        self,
        client: BunqClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_items: int = DEFAULT_MAX_ITEMS,
    ) -> None:
        self.client = client
        self.page_size = page_size
        self.max_items = max_items

    def iter_pages(
        self,
        session: BunqSession,
        remote_account_id: int,
        date_from: str,
    ) -> Iterator[list[RemotePayment]]:
        """Yield non-empty pages, newest first, lazily."""
        older_id: int | None = None
        fetched = 0
        pages = 0

        while True:
            raw = self.client.list_payments(
                session,
                remote_account_id,
                count=self.page_size,
                older_id=older_id,
            )
            page = [RemotePayment.from_api(p) for p in raw]
            if not page:
                logger.debug("Account %s: empty page after %d page(s)", remote_account_id, pages)
                return

            pages += 1
            fetched += len(page)
            yield page

            oldest = page[-1]
            older_id = oldest.id

            if oldest.date is not None and oldest.date < date_from:
                logger.debug(
                    "Account %s: reached %s (< %s) on page %d",
                    remote_account_id,
                    oldest.date,
                    date_from,
                    pages,
                )
                return

            if fetched >= self.max_items:
                logger.warning(
                    "Account %s: stopped after %d payments (max_items=%d) before reaching %s",
                    remote_account_id,
                    fetched,
                    self.max_items,
                    date_from,
                )
                return

    def fetch_since(
        self,
        session: BunqSession,
        remote_account_id: int,
        date_from: str,
    ) -> list[RemotePayment]:
        """All fetched payments concatenated, newest first, unfiltered."""
        payments: list[RemotePayment] = []
        for page in self.iter_pages(session, remote_account_id, date_from):
            payments.extend(page)
        return payments
