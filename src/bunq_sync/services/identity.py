"""One-time bunq identity handshake for a household.

installation → device-server → session-server, each step authenticated by
the result of the previous one. Nothing is persisted unless all three
succeed; re-running overwrites the household's connection.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..bunq_client import BunqClient, BunqError, KeyMaterial

if TYPE_CHECKING:
    from ..state_store import ConnectionRecord, StateStore

logger = logging.getLogger(__name__)

ClientFactory = Callable[[KeyMaterial], BunqClient]


class IdentityBootstrapError(Exception):
    """A handshake step failed; no identity was stored."""

    def __init__(self, household_id: str, step: str, cause: Exception):
        self.household_id = household_id
        self.step = step
        self.cause = cause
        super().__init__(f"bunq setup failed for household {household_id} at {step}: {cause}")


class IdentityBootstrap:
    """Registers a fresh keypair and device with bunq and stores the result."""

    def __init__(
        self,
        client_factory: ClientFactory,
        store: StateStore,
        api_key: str,
        device_description: str = "BudgetFlow",
        permitted_ips: list[str] | None = None,
    ) -> None:
        self.client_factory = client_factory
        self.store = store
        self.api_key = api_key
        self.device_description = device_description
        self.permitted_ips = permitted_ips or ["*"]

    def bootstrap(self, household_id: str) -> ConnectionRecord:
        """Run the full handshake and upsert the household's connection."""
        step = "key generation"
        try:
            keys = KeyMaterial.generate()
            client = self.client_factory(keys)

            step = "installation"
            logger.info("Creating bunq installation for household %s", household_id)
            installation = client.create_installation()

            step = "device-server"
            logger.info("Registering device server")
            device_id = client.create_device_server(
                installation.token,
                self.api_key,
                self.device_description,
                self.permitted_ips,
            )

            step = "session-server"
            logger.info("Creating session")
            session = client.create_session(installation.token, self.api_key)
        except (BunqError, ValueError, KeyError, TypeError) as e:
            logger.error("bunq setup failed at %s: %s", step, e)
            raise IdentityBootstrapError(household_id, step, e) from e

        connection = self.store.upsert_connection(
            household_id=household_id,
            private_key_pem=keys.private_key_pem,
            public_key_pem=keys.public_key_pem,
            installation_token=installation.token,
            server_public_key=installation.server_public_key,
            device_server_id=device_id,
            session_token=session.token,
            session_user_id=session.user_id,
        )
        logger.info(
            "bunq connection stored for household %s (user %s, device %s)",
            household_id,
            session.user_id,
            device_id,
        )
        return connection
