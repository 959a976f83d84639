"""Test fixtures and utilities."""

from pathlib import Path

import pytest
from fixtures import BASE_URL

from bunq_sync.bunq_client import BunqClient, KeyMaterial
from bunq_sync.state_store import StateStore


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def store(temp_db) -> StateStore:
    """A fresh state store with migrations applied."""
    return StateStore(temp_db)


@pytest.fixture(scope="session")
def keys() -> KeyMaterial:
    """One RSA keypair for the whole test session (generation is slow)."""
    return KeyMaterial.generate()


@pytest.fixture
def client(keys) -> BunqClient:
    """A bunq client pointed at the mocked base URL."""
    return BunqClient(BASE_URL, keys)


@pytest.fixture
def household(store, keys) -> dict:
    """A household with a stored connection, one local account and default categories."""
    connection = store.upsert_connection(
        household_id="hh-1",
        private_key_pem=keys.private_key_pem,
        public_key_pem=keys.public_key_pem,
        installation_token="installation-token",
        server_public_key="-----BEGIN PUBLIC KEY-----\nserver\n-----END PUBLIC KEY-----",
        device_server_id=900,
        session_token="session-token-1",
        session_user_id=7001,
    )
    account_id = store.add_account("hh-1", "Betaalrekening", iban="NL00BUNQ0000000001", account_id="acc-main")
    expenses = store.add_category("hh-1", "Overig", "uitgaven", category_id="cat-overig")
    income = store.add_category("hh-1", "Inkomsten", "inkomsten", category_id="cat-inkomsten")
    expense_sub = store.add_subcategory(expenses, "Overig", subcategory_id="sub-expense")
    income_sub = store.add_subcategory(income, "Overig", subcategory_id="sub-income")
    return {
        "connection": connection,
        "account_id": account_id,
        "expense_sub": expense_sub,
        "income_sub": income_sub,
    }
