"""
bunq API payload builders for tests.

Shapes follow the provider's envelope: every object is wrapped in a
single-key dict naming its type, inside a top-level "Response" list.
"""

import base64

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

BASE_URL = "https://bunq.test/v1"


def verify_signature(public_key_pem: str, data: bytes, signature_b64: str) -> bool:
    """Check a request signature the way the server does, with the registered public key."""
    public_key = serialization.load_pem_public_key(public_key_pem.encode("ascii"))
    try:
        public_key.verify(base64.b64decode(signature_b64), data, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


def payment(
    payment_id: int,
    created: str,
    value: str,
    description: str = "Albert Heijn 1234",
    iban: str | None = "NL02ABNA0123456789",
    name: str | None = "Albert Heijn",
) -> dict:
    """A bunq Payment object as it appears inside {"Payment": ...}."""
    return {
        "id": payment_id,
        "created": created,
        "updated": created,
        "monetary_account_id": 42,
        "amount": {"value": value, "currency": "EUR"},
        "description": description,
        "type": "BUNQ",
        "alias": {"iban": "NL00BUNQ0000000001", "display_name": "J. Jansen"},
        "counterparty_alias": {"iban": iban, "display_name": name},
    }


def payment_page(*payments: dict) -> dict:
    """Response envelope for a payment listing."""
    return {"Response": [{"Payment": p} for p in payments]}


def monetary_accounts_response(*accounts: tuple[str, dict]) -> dict:
    return {"Response": [{tag: body} for tag, body in accounts]}


def bank_account(account_id: int = 42, description: str = "Main", iban: str = "NL00BUNQ0000000001") -> dict:
    return {
        "id": account_id,
        "description": description,
        "status": "ACTIVE",
        "currency": "EUR",
        "balance": {"value": "1234.56", "currency": "EUR"},
        "alias": [
            {"type": "PHONE_NUMBER", "value": "+31600000000"},
            {"type": "IBAN", "value": iban, "name": "J. Jansen"},
        ],
    }


def session_response(token: str = "session-token-2", user_id: int = 7001, tag: str = "UserPerson") -> dict:
    return {
        "Response": [
            {"Id": {"id": 555}},
            {"Token": {"id": 556, "token": token}},
            {tag: {"id": user_id, "display_name": "J. Jansen"}},
        ]
    }


