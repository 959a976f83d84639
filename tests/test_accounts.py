"""Tests for monetary account normalization and discovery."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fixtures import bank_account

from bunq_sync.bunq_client import BunqSession
from bunq_sync.schemas import RemoteAccount, extract_iban, normalize_account, normalize_accounts
from bunq_sync.services import AccountCatalog


class TestNormalizeAccount:
    """Mapping of tagged account variants onto one shape."""

    def test_bank_account(self):
        account = normalize_account({"MonetaryAccountBank": bank_account()})

        assert account == RemoteAccount(
            type="bank",
            remote_id=42,
            status="ACTIVE",
            description="Main",
            iban="NL00BUNQ0000000001",
            balance=Decimal("1234.56"),
            currency="EUR",
        )

    @pytest.mark.parametrize(
        "tag,expected_type",
        [
            ("MonetaryAccountSavings", "savings"),
            ("MonetaryAccountJoint", "joint"),
            ("MonetaryAccountCard", "card"),
            ("MonetaryAccountExternal", "external"),
            ("MonetaryAccountInvestment", "investment"),
        ],
    )
    def test_other_known_variants(self, tag, expected_type):
        account = normalize_account({tag: bank_account(account_id=77)})

        assert account.type == expected_type
        assert account.remote_id == 77

    def test_unknown_variant_is_all_none(self):
        account = normalize_account({"MonetaryAccountCrypto": {"id": 5, "description": "Coins"}})

        assert account == RemoteAccount()
        assert account.is_known is False

    def test_missing_balance(self):
        body = bank_account()
        del body["balance"]

        account = normalize_account({"MonetaryAccountBank": body})

        assert account.balance is None
        assert account.currency == "EUR"

    def test_to_dict_uses_float_balance(self):
        data = normalize_account({"MonetaryAccountBank": bank_account()}).to_dict()

        assert data["balance"] == 1234.56
        assert data["type"] == "bank"

    def test_malformed_id_does_not_break_the_listing(self):
        """A known variant with a non-numeric id keeps its other fields."""
        accounts = normalize_accounts(
            [
                {"MonetaryAccountBank": bank_account(account_id=42)},
                {"MonetaryAccountSavings": {**bank_account(), "id": "not-a-number"}},
                {"MonetaryAccountJoint": {**bank_account(), "id": ["nested"]}},
            ]
        )

        assert [a.remote_id for a in accounts] == [42, None, None]
        assert accounts[1].type == "savings"
        assert accounts[1].iban == "NL00BUNQ0000000001"

    def test_normalize_accounts_keeps_order(self):
        accounts = normalize_accounts(
            [
                {"MonetaryAccountSavings": bank_account(account_id=2)},
                {"Unheard": {}},
                {"MonetaryAccountBank": bank_account(account_id=1)},
            ]
        )

        assert [a.remote_id for a in accounts] == [2, None, 1]


class TestExtractIban:
    def test_picks_iban_alias(self):
        aliases = [
            {"type": "EMAIL", "value": "j@example.com"},
            {"type": "IBAN", "value": "NL11BUNQ2222222222"},
        ]
        assert extract_iban(aliases) == "NL11BUNQ2222222222"

    def test_no_iban_alias(self):
        assert extract_iban([{"type": "PHONE_NUMBER", "value": "+31"}]) is None
        assert extract_iban(None) is None


class TestAccountCatalog:
    """Discovery through a mocked client."""

    @pytest.fixture
    def catalog(self):
        client = MagicMock()
        client.list_monetary_accounts.return_value = [
            {"MonetaryAccountBank": bank_account()},
            {"MonetaryAccountSomethingNew": {"id": 3}},
        ]
        return AccountCatalog(client)

    def test_includes_unknown_by_default(self, catalog):
        accounts = catalog.list_accounts(BunqSession("tok", 7001))

        assert len(accounts) == 2
        assert accounts[1].is_known is False

    def test_can_drop_unknown(self, catalog):
        accounts = catalog.list_accounts(BunqSession("tok", 7001), include_unknown=False)

        assert [a.remote_id for a in accounts] == [42]
