"""
bunq API Client.

Provides:
- RSA key generation and request signing
- Signed requests with the provider's envelope headers
- Installation, device-server and session-server handshake calls
- Monetary account and payment listing

Treats bunq errors as loud failures; nothing is retried.
"""

from .client import (
    BunqAPIError,
    BunqClient,
    BunqConnectionError,
    BunqError,
    BunqSession,
    Installation,
    find_tagged,
)
from .keys import KeyMaterial

__all__ = [
    "BunqClient",
    "BunqError",
    "BunqAPIError",
    "BunqConnectionError",
    "BunqSession",
    "Installation",
    "KeyMaterial",
    "find_tagged",
]
