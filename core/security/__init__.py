"""Security module - token encryption."""

from core.security.encryption import (
    TokenEncryption,
    EncryptedToken,
    generate_encryption_key,
)

__all__ = [
    "TokenEncryption",
    "EncryptedToken",
    "generate_encryption_key",
]
