"""
bunq API client implementation.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .keys import KeyMaterial

logger = logging.getLogger(__name__)

# Tagged variants the session-server response may nest the user under,
# in resolution order.
SESSION_USER_TAGS = ("UserPerson", "UserCompany", "UserLight")


class BunqError(Exception):
    """Base exception for bunq client errors."""

    pass


class BunqAPIError(BunqError):
    """API returned a non-2xx response."""

    def __init__(
        self,
        status_code: int,
        path: str,
        message: str | None = None,
        response_body: str | None = None,
    ):
        self.status_code = status_code
        self.path = path
        self.message = message or ""
        self.response_body = response_body

        detail = f": {message}" if message else ""
        super().__init__(f"bunq {path} failed: {status_code}{detail}")


class BunqConnectionError(BunqError):
    """Failed to reach bunq (network error or timeout)."""

    pass


@dataclass
class Installation:
    """Result of the installation step."""

    token: str
    server_public_key: str


@dataclass
class BunqSession:
    """A provider-issued session token and the user it belongs to."""

    token: str
    user_id: int


def find_tagged(items: list[dict], tags: tuple[str, ...] | str) -> Any | None:
    """Return the payload of the first item carrying one of ``tags``.

    bunq wraps every object in a single-key dict naming its type
    (``{"Token": {...}}``). Tags are checked in the given priority order,
    so for ``("UserPerson", "UserCompany")`` a person always wins.
    """
    if isinstance(tags, str):
        tags = (tags,)
    for tag in tags:
        for item in items:
            if isinstance(item, dict) and item.get(tag) is not None:
                return item[tag]
    return None


def _error_message(body: str | None) -> str | None:
    """Pull the human-readable description out of a bunq error body."""
    if not body:
        return None
    try:
        errors = json.loads(body).get("Error", [])
    except (ValueError, AttributeError):
        return None
    descriptions = [e.get("error_description") for e in errors if isinstance(e, dict)]
    descriptions = [d for d in descriptions if d]
    return "; ".join(descriptions) or None


class BunqClient:
    """
    Signed transport for the bunq API.

    Every request body is serialized once, signed with the connection's
    private key and sent as exactly those bytes. The client holds no session
    state: the auth token is passed per call, so one client can serve the
    installation, device and session tokens of a connection in turn.

    Failed requests are never retried here. A 5xx or network error is
    surfaced immediately to the caller.
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        keys: KeyMaterial,
        timeout: int = DEFAULT_TIMEOUT,
        language: str = "nl_NL",
        region: str = "nl_NL",
        geolocation: str = "0 0 0 0 000",
        user_agent: str = "bunq-sync/0.1",
    ):
        """
        Initialize bunq client.

        Args:
            base_url: API root including version (e.g. "https://api.bunq.com/v1")
            keys: Key material used to sign every request
            timeout: Request timeout in seconds
            language: Value for X-Bunq-Language
            region: Value for X-Bunq-Region
            geolocation: Value for X-Bunq-Geolocation
            user_agent: Value for User-Agent
        """
        self.base_url = base_url.rstrip("/")
        self.keys = keys
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Cache-Control": "no-cache",
                "User-Agent": user_agent,
                "X-Bunq-Language": language,
                "X-Bunq-Region": region,
                "X-Bunq-Geolocation": geolocation,
            }
        )

        adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @staticmethod
    def serialize_body(body: dict | None) -> bytes:
        """Canonical JSON bytes for ``body``; empty when there is none."""
        if body is None:
            return b""
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def request(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        auth_token: str | None = None,
        params: dict | None = None,
    ) -> list[dict]:
        """Make a signed API request and return the unwrapped ``Response`` list."""
        url = f"{self.base_url}{path}"
        payload = self.serialize_body(body)

        headers = {
            "X-Bunq-Client-Request-Id": str(uuid.uuid4()),
            "X-Bunq-Client-Signature": self.keys.sign(payload),
        }
        if auth_token:
            headers["X-Bunq-Client-Authentication"] = auth_token

        logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                data=payload if body is not None else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout for {url}: {e}")
            raise BunqConnectionError(f"Request to bunq timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {url}: {e}")
            raise BunqConnectionError(f"Failed to connect to bunq at {self.base_url}: {e}") from e

        logger.debug(f"Response status: {response.status_code}")

        if not response.ok:
            error_body = response.text
            logger.error(f"bunq error {response.status_code} on {method} {path}: {error_body}")
            raise BunqAPIError(
                status_code=response.status_code,
                path=path,
                message=_error_message(error_body),
                response_body=error_body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BunqError(f"bunq {path} returned a non-JSON body") from e

        inner = data.get("Response") if isinstance(data, dict) else None
        if not isinstance(inner, list):
            raise BunqError(f"bunq {path} returned no Response envelope")
        return inner

    # Identity handshake

    def create_installation(self) -> Installation:
        """Register our public key; returns the installation token and server key."""
        resp = self.request(
            "POST",
            "/installation",
            {"client_public_key": self.keys.public_key_pem},
        )
        token = find_tagged(resp, "Token")
        server_key = find_tagged(resp, "ServerPublicKey")
        if not token or not server_key:
            raise BunqError("Installation response lacks Token or ServerPublicKey")
        return Installation(
            token=token["token"],
            server_public_key=server_key["server_public_key"],
        )

    def create_device_server(
        self,
        installation_token: str,
        api_key: str,
        description: str,
        permitted_ips: list[str] | None = None,
    ) -> int:
        """Register this device for the API key; returns the device-server id."""
        resp = self.request(
            "POST",
            "/device-server",
            {
                "description": description,
                "secret": api_key,
                "permitted_ips": permitted_ips or ["*"],
            },
            auth_token=installation_token,
        )
        device = find_tagged(resp, "Id")
        if not device:
            raise BunqError("Device-server response lacks Id")
        return int(device["id"])

    def create_session(self, installation_token: str, api_key: str) -> BunqSession:
        """Open a new session for the API key."""
        resp = self.request(
            "POST",
            "/session-server",
            {"secret": api_key},
            auth_token=installation_token,
        )
        token = find_tagged(resp, "Token")
        user = find_tagged(resp, SESSION_USER_TAGS)
        if not token or not user:
            raise BunqError("Session-server response lacks Token or a User variant")
        return BunqSession(token=token["token"], user_id=int(user["id"]))

    # Resources

    def list_monetary_accounts(self, session: BunqSession) -> list[dict]:
        """Raw tagged monetary-account objects for the session user."""
        return self.request(
            "GET",
            f"/user/{session.user_id}/monetary-account",
            auth_token=session.token,
        )

    def list_payments(
        self,
        session: BunqSession,
        account_id: int,
        count: int = 200,
        older_id: int | None = None,
    ) -> list[dict]:
        """One page of payments, newest first, optionally older than a payment id."""
        params: dict[str, Any] = {"count": count}
        if older_id is not None:
            params["older_id"] = older_id

        resp = self.request(
            "GET",
            f"/user/{session.user_id}/monetary-account/{account_id}/payment",
            auth_token=session.token,
            params=params,
        )
        return [item["Payment"] for item in resp if isinstance(item, dict) and item.get("Payment")]
