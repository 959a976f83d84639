"""Discovery of a user's bunq monetary accounts."""

import logging

from ..bunq_client import BunqClient, BunqSession
from ..schemas.accounts import RemoteAccount, normalize_accounts

logger = logging.getLogger(__name__)


class AccountCatalog:
    """Fetches and normalizes the remote account list."""

    def __init__(self, client: BunqClient) -> None:
        self.client = client

    def list_accounts(self, session: BunqSession, include_unknown: bool = True) -> list[RemoteAccount]:
        """All monetary accounts of the session user, one shape for every subtype.

        Unrecognized subtypes come back as all-None records unless
        ``include_unknown`` is False.
        """
        accounts = normalize_accounts(self.client.list_monetary_accounts(session))

        unknown = sum(1 for a in accounts if not a.is_known)
        if unknown:
            logger.warning("%d monetary account(s) of unknown type", unknown)
        if not include_unknown:
            accounts = [a for a in accounts if a.is_known]
        return accounts
