"""
Tests for backward payment paging.

Uses a mocked client to count page requests; one test goes through the
real client with responses to check the cursor on the wire.
"""

from unittest.mock import MagicMock

import responses
from responses import matchers
from fixtures import BASE_URL, payment, payment_page

from bunq_sync.bunq_client import BunqSession
from bunq_sync.schemas import RemotePayment
from bunq_sync.services import PaymentPager, filter_since

SESSION = BunqSession(token="session-token-1", user_id=7001)


def _pager(pages, page_size=200, max_items=5000):
    client = MagicMock()
    client.list_payments.side_effect = pages
    return PaymentPager(client, page_size=page_size, max_items=max_items), client


class TestStopConditions:
    """Paging stops at the first matching condition."""

    def test_stops_at_page_that_crosses_date_from(self):
        """Third page is never requested once the second reaches past date_from."""
        page1 = [payment(30, "2024-03-10 09:00:00.000000", "-1.00"), payment(29, "2024-03-05 09:00:00", "-2.00")]
        page2 = [payment(28, "2024-03-01 09:00:00", "-3.00"), payment(27, "2024-02-20 09:00:00", "-4.00")]
        page3 = [payment(26, "2024-02-10 09:00:00", "-5.00")]
        pager, client = _pager([page1, page2, page3])

        fetched = pager.fetch_since(SESSION, 42, "2024-03-01")

        assert client.list_payments.call_count == 2
        assert [p.id for p in fetched] == [30, 29, 28, 27]
        assert [p.id for p in filter_since(fetched, "2024-03-01")] == [30, 29, 28]

    def test_three_pages_with_cutoff_on_the_last(self):
        """Pages 1 and 2 are in range, page 3 crosses date_from: exactly 3 requests."""
        page1 = [payment(30, "2024-03-20 09:00:00", "-1.00"), payment(29, "2024-03-15 09:00:00", "-2.00")]
        page2 = [payment(28, "2024-03-10 09:00:00", "-3.00"), payment(27, "2024-03-05 09:00:00", "-4.00")]
        page3 = [payment(26, "2024-03-02 09:00:00", "-5.00"), payment(25, "2024-02-27 09:00:00", "-6.00")]
        pager, client = _pager([page1, page2, page3, []])

        fetched = pager.fetch_since(SESSION, 42, "2024-03-01")
        kept = filter_since(fetched, "2024-03-01")

        assert client.list_payments.call_count == 3
        assert len(fetched) == 6
        assert [p.id for p in kept] == [30, 29, 28, 27, 26]

    def test_cursor_is_oldest_id_of_previous_page(self):
        page1 = [payment(30, "2024-03-10 09:00:00", "-1.00"), payment(29, "2024-03-05 09:00:00", "-2.00")]
        pager, client = _pager([page1, []])

        pager.fetch_since(SESSION, 42, "2024-03-01")

        first, second = client.list_payments.call_args_list
        assert first.kwargs["older_id"] is None
        assert second.kwargs["older_id"] == 29
        assert second.kwargs["count"] == 200

    def test_empty_first_page(self):
        pager, client = _pager([[]])

        assert pager.fetch_since(SESSION, 42, "2024-01-01") == []
        assert client.list_payments.call_count == 1

    def test_max_items_bounds_the_walk(self):
        pages = [
            [payment(10, "2024-05-01 00:00:00", "-1.00"), payment(9, "2024-05-01 00:00:00", "-1.00")],
            [payment(8, "2024-05-01 00:00:00", "-1.00"), payment(7, "2024-05-01 00:00:00", "-1.00")],
            [payment(6, "2024-05-01 00:00:00", "-1.00")],
        ]
        pager, client = _pager(pages, page_size=2, max_items=3)

        fetched = pager.fetch_since(SESSION, 42, "2024-01-01")

        assert client.list_payments.call_count == 2
        assert len(fetched) == 4

    def test_malformed_oldest_date_keeps_paging(self):
        page1 = [payment(5, "2024-03-10 09:00:00", "-1.00"), payment(4, "garbage", "-2.00")]
        page2 = [payment(3, "2023-12-31 23:59:59", "-3.00")]
        pager, client = _pager([page1, page2])

        fetched = pager.fetch_since(SESSION, 42, "2024-01-01")

        assert client.list_payments.call_count == 2
        assert [p.id for p in fetched] == [5, 4, 3]

    def test_iter_pages_is_lazy(self):
        page1 = [payment(5, "2024-03-10 09:00:00", "-1.00")]
        pager, client = _pager([page1, []])

        pages = pager.iter_pages(SESSION, 42, "2024-01-01")
        assert client.list_payments.call_count == 0

        assert [p.id for p in next(pages)] == [5]
        assert client.list_payments.call_count == 1


class TestFilterSince:
    def test_boundary_is_inclusive_and_unreadable_dates_kept(self):
        payments = [
            RemotePayment.from_api(payment(3, "2024-03-01 00:00:00", "-1.00")),
            RemotePayment.from_api(payment(2, "not a date", "-1.00")),
            RemotePayment.from_api(payment(1, "2024-02-29 23:59:59", "-1.00")),
        ]

        assert [p.id for p in filter_since(payments, "2024-03-01")] == [3, 2]

    def test_undated_payment_after_the_cutoff_is_dropped(self):
        """On the boundary page, an undated payment older than a pre-cutoff one is out of range."""
        payments = [
            RemotePayment.from_api(payment(4, "2024-03-02 00:00:00", "-1.00")),
            RemotePayment.from_api(payment(3, "2024-02-28 10:00:00", "-1.00")),
            RemotePayment.from_api(payment(2, "garbage", "-1.00")),
            RemotePayment.from_api(payment(1, "2024-02-20 10:00:00", "-1.00")),
        ]

        assert [p.id for p in filter_since(payments, "2024-03-01")] == [4]


class TestPagingOverHttp:
    @responses.activate
    def test_second_request_carries_older_id(self, client):
        url = f"{BASE_URL}/user/7001/monetary-account/42/payment"
        responses.add(
            responses.GET,
            url,
            json=payment_page(payment(12, "2024-03-10 09:00:00", "-1.00"), payment(11, "2024-03-09 09:00:00", "-1.00")),
            match=[matchers.query_param_matcher({"count": "2"})],
        )
        responses.add(
            responses.GET,
            url,
            json=payment_page(payment(10, "2024-02-01 09:00:00", "-1.00")),
            match=[matchers.query_param_matcher({"count": "2", "older_id": "11"})],
        )

        pager = PaymentPager(client, page_size=2)
        fetched = pager.fetch_since(SESSION, 42, "2024-03-01")

        assert [p.id for p in fetched] == [12, 11, 10]
        assert len(responses.calls) == 2
