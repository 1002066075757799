"""
Connection registry and credential encryption.
"""

from dbadmin.connection.crypto import PasswordCipher, generate_key
from dbadmin.connection.registry import ConnectionRegistry

__all__ = [
    "ConnectionRegistry",
    "PasswordCipher",
    "generate_key",
]
