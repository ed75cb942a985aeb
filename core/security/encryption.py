"""Token encryption using AES-GCM.

Encrypts the cached Microsoft Graph access token at rest.
Uses AES-256-GCM for authenticated encryption; the tenant id is bound as
additional authenticated data so a cache file only decrypts for its tenant.
"""

import base64
import json
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

from cryptography.hazmat.primitives.ciphers.aead import AESGCM


def generate_encryption_key() -> str:
    """Generate a new 256-bit encryption key.

    Returns:
        Base64-encoded 32-byte key suitable for AES-256
    """
    key = secrets.token_bytes(32)
    return base64.b64encode(key).decode('utf-8')


@dataclass
class EncryptedToken:
    """Encrypted token with metadata."""
    ciphertext: str  # Base64, GCM tag appended
    nonce: str       # Base64-encoded 96-bit nonce
    created_at: str
    tenant_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ciphertext": self.ciphertext,
            "nonce": self.nonce,
            "created_at": self.created_at,
            "tenant_id": self.tenant_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EncryptedToken":
        return cls(
            ciphertext=data["ciphertext"],
            nonce=data["nonce"],
            created_at=data.get("created_at", ""),
            tenant_id=data["tenant_id"],
        )


class TokenEncryption:
    """AES-256-GCM encryption for cached tokens.

    Usage:
        enc = TokenEncryption(os.environ["TOKEN_ENCRYPTION_KEY"])
        encrypted = enc.encrypt({"access_token": "..."}, tenant_id="abc")
        tokens = enc.decrypt(encrypted)
    """

    def __init__(self, encryption_key: str):
        """Initialize with base64-encoded encryption key.

        Raises:
            ValueError: If the key is not a base64-encoded 32-byte value
        """
        try:
            self._key = base64.b64decode(encryption_key)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid encryption key: {e}")
        if len(self._key) != 32:
            raise ValueError("Invalid encryption key: must be 32 bytes (256 bits)")

        self._aesgcm = AESGCM(self._key)

    def encrypt(self, token_data: Dict[str, Any], tenant_id: str) -> EncryptedToken:
        """Encrypt token data for one tenant."""
        plaintext = json.dumps(token_data).encode('utf-8')
        nonce = os.urandom(12)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext, tenant_id.encode('utf-8'))

        return EncryptedToken(
            ciphertext=base64.b64encode(ciphertext).decode('utf-8'),
            nonce=base64.b64encode(nonce).decode('utf-8'),
            created_at=datetime.now(timezone.utc).isoformat(),
            tenant_id=tenant_id,
        )

    def decrypt(self, encrypted: EncryptedToken) -> Dict[str, Any]:
        """Decrypt token data.

        Raises:
            ValueError: If decryption fails (wrong key, tampered data, wrong tenant)
        """
        try:
            ciphertext = base64.b64decode(encrypted.ciphertext)
            nonce = base64.b64decode(encrypted.nonce)
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, encrypted.tenant_id.encode('utf-8'))
            return json.loads(plaintext.decode('utf-8'))
        except Exception as e:
            raise ValueError(f"Token decryption failed: {e}")
