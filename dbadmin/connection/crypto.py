"""
Encryption utilities for stored connection passwords.

Passwords in connections.json are encrypted with Fernet (AES-128-CBC +
HMAC-SHA256, base64 encoded) from the cryptography library.

KEY MANAGEMENT:
---------------
- The key comes from Settings.secret_key (DBADMIN_SECRET_KEY)
- Without it a fixed development key is used and a RuntimeWarning is
  emitted; stored passwords are then only obfuscated
- Changing the key makes existing entries undecryptable; their passwords
  must be re-entered

Never log decrypted passwords.
"""

import base64
import hashlib
import warnings
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from dbadmin.core.config import get_settings
from dbadmin.errors import ErrorCode, RegistryError, decryption_failed

DEV_KEY_SEED = b"dbadmin-dev-key-do-not-use-in-production"


def resolve_key(secret_key: Optional[str] = None) -> bytes:
    """
    Fernet key from ``secret_key``, Settings.secret_key, or the development fallback.

    Generate a production key with ``generate_key()``.
    """
    key_str = secret_key or get_settings().secret_key
    if key_str:
        return key_str.encode()

    warnings.warn(
        "DBADMIN_SECRET_KEY not set! Using development fallback key. "
        "This is NOT secure for production.",
        RuntimeWarning,
    )
    return base64.urlsafe_b64encode(hashlib.sha256(DEV_KEY_SEED).digest())


def generate_key() -> str:
    """A new URL-safe base64-encoded 32-byte key for DBADMIN_SECRET_KEY."""
    return Fernet.generate_key().decode("utf-8")


class PasswordCipher:
    """
    Encrypts and decrypts single password strings.

    Example:
        cipher = PasswordCipher(generate_key())
        token = cipher.encrypt("s3cret")
        cipher.decrypt(token)  # "s3cret"
    """

    def __init__(self, secret_key: Optional[str] = None):
        try:
            self._fernet = Fernet(resolve_key(secret_key))
        except (ValueError, TypeError) as e:
            raise RegistryError(
                f"Invalid encryption key: {e}",
                code=ErrorCode.ERR_ENCRYPTION_FAILED,
                original_error=e,
                suggestion="Use a key produced by dbadmin.connection.crypto.generate_key()",
            )

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str, connection_id: Optional[str] = None) -> str:
        """
        Raises:
            RegistryError: If the token was made with another key or is corrupted
        """
        if not token:
            return ""
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            error = decryption_failed(connection_id)
            error.original_error = e
            raise error
