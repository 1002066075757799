"""
Tests for stored password encryption.
"""

import pytest

from dbadmin.connection.crypto import PasswordCipher, generate_key, resolve_key
from dbadmin.errors import ErrorCode, RegistryError


@pytest.fixture
def cipher():
    """Return a cipher with a fresh key."""
    return PasswordCipher(generate_key())


def test_round_trip(cipher):
    """Test encrypt then decrypt."""
    token = cipher.encrypt("s3cret")
    assert token != "s3cret"
    assert cipher.decrypt(token) == "s3cret"


def test_empty_password(cipher):
    """Test that empty passwords stay empty."""
    assert cipher.encrypt("") == ""
    assert cipher.decrypt("") == ""


def test_wrong_key(cipher):
    """Test that another key cannot decrypt."""
    token = cipher.encrypt("s3cret")
    other = PasswordCipher(generate_key())

    with pytest.raises(RegistryError) as exc_info:
        other.decrypt(token, "conn-1")
    assert exc_info.value.code is ErrorCode.ERR_DECRYPTION_FAILED
    assert exc_info.value.details == {"connection_id": "conn-1"}


def test_invalid_key():
    """Test that a malformed key is rejected."""
    with pytest.raises(RegistryError) as exc_info:
        PasswordCipher("not-a-fernet-key")
    assert exc_info.value.code is ErrorCode.ERR_ENCRYPTION_FAILED


def test_key_from_settings(monkeypatch):
    """Test DBADMIN_SECRET_KEY."""
    key = generate_key()
    monkeypatch.setenv("DBADMIN_SECRET_KEY", key)
    assert resolve_key() == key.encode()


def test_development_key_warns(monkeypatch):
    """Test the fallback key warning."""
    monkeypatch.delenv("DBADMIN_SECRET_KEY", raising=False)
    with pytest.warns(RuntimeWarning, match="DBADMIN_SECRET_KEY not set"):
        cipher = PasswordCipher()
    assert cipher.decrypt(cipher.encrypt("x")) == "x"
