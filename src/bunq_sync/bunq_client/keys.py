"""
RSA key material for bunq request signing.

bunq authenticates every request by an RSA-SHA256 (PKCS#1 v1.5) signature
over the exact request body. The public half is registered once during
installation; the private half is stored with the connection.
"""

import base64
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537


@dataclass
class KeyMaterial:
    """A signing keypair together with its PEM encodings."""

    private_key: rsa.RSAPrivateKey
    private_key_pem: str
    public_key_pem: str

    @classmethod
    def generate(cls) -> "KeyMaterial":
        """Generate a fresh 2048-bit keypair.

        Failures are not transient and are not retried.
        """
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=KEY_SIZE,
        )
        return cls(
            private_key=private_key,
            private_key_pem=_private_pem(private_key),
            public_key_pem=_public_pem(private_key),
        )

    @classmethod
    def from_private_pem(cls, pem: str) -> "KeyMaterial":
        """Load a stored PKCS#8 private key PEM."""
        private_key = serialization.load_pem_private_key(pem.encode("ascii"), password=None)
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ValueError(f"Expected an RSA private key, got {type(private_key).__name__}")
        return cls(
            private_key=private_key,
            private_key_pem=pem,
            public_key_pem=_public_pem(private_key),
        )

    def sign(self, data: bytes) -> str:
        """Return the base64 RSA-SHA256 signature of ``data``."""
        signature = self.private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(signature).decode("ascii")


def _private_pem(private_key: rsa.RSAPrivateKey) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def _public_pem(private_key: rsa.RSAPrivateKey) -> str:
    return (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )
