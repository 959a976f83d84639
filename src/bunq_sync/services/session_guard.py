"""Lazy session validation with a single renewal attempt.

A stored session is never assumed fresh. It is checked with a cheap
authenticated read; if the check fails for any reason, one new session is
created with the stored installation token and persisted. A failed
renewal is fatal for the current run and is not retried.

Calls for one connection must not run concurrently: two renewals racing
would overwrite each other's token.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..bunq_client import BunqClient, BunqError, BunqSession

if TYPE_CHECKING:
    from ..state_store import ConnectionRecord, StateStore

logger = logging.getLogger(__name__)


class SessionRenewalError(Exception):
    """Creating a replacement session failed."""

    def __init__(self, household_id: str, message: str):
        self.household_id = household_id
        super().__init__(f"Could not renew bunq session for household {household_id}: {message}")


class SessionGuard:
    """Ensures a connection has a usable session before it is used."""

    def __init__(self, store: StateStore, api_key: str) -> None:
        self.store = store
        self.api_key = api_key

    def ensure_valid_session(
        self,
        connection: ConnectionRecord,
        client: BunqClient,
    ) -> BunqSession:
        """Return a working session for ``connection``, renewing it at most once."""
        if connection.session_token and connection.session_user_id is not None:
            session = BunqSession(connection.session_token, int(connection.session_user_id))
            try:
                client.list_monetary_accounts(session)
                return session
            except BunqError as e:
                logger.info(
                    "Session check failed for household %s (%s), renewing",
                    connection.household_id,
                    e,
                )
        else:
            logger.info("No stored session for household %s, creating one", connection.household_id)

        return self.renew(connection, client)

    def renew(self, connection: ConnectionRecord, client: BunqClient) -> BunqSession:
        """Create and persist one new session. Never loops."""
        if not connection.installation_token:
            raise SessionRenewalError(connection.household_id, "no installation token; run setup")

        try:
            session = client.create_session(connection.installation_token, self.api_key)
        except BunqError as e:
            logger.error("Session renewal failed for household %s: %s", connection.household_id, e)
            raise SessionRenewalError(connection.household_id, str(e)) from e

        self.store.update_session(connection.id, session.token, session.user_id)
        connection.session_token = session.token
        connection.session_user_id = session.user_id
        logger.info("Renewed bunq session for household %s", connection.household_id)
        return session
