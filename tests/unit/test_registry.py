"""
Tests for the connection registry, backed by SQLite files.
"""

import json
import stat
import threading

import pytest

from dbadmin.adapters.factory import create_default_factory
from dbadmin.connection.crypto import PasswordCipher, generate_key
from dbadmin.connection.registry import CONNECTIONS_FILE, ConnectionRegistry
from dbadmin.errors import ErrorCode, RegistryError
from dbadmin.models import ConnectionDescriptor, EngineKind


@pytest.fixture
def cipher():
    """Return a cipher with a fresh key."""
    return PasswordCipher(generate_key())


@pytest.fixture
def registry(tmp_path, cipher):
    """Return a registry persisting under tmp_path."""
    registry = ConnectionRegistry(create_default_factory(), data_dir=tmp_path / "state", cipher=cipher)
    yield registry
    registry.close_all()


@pytest.fixture
def descriptor(tmp_path):
    """Return a SQLite descriptor with a password to store."""
    return ConnectionDescriptor(
        engine=EngineKind.SQLITE,
        host=str(tmp_path / "app.db"),
        password="s3cret",
        name="local",
    )


class TestConfigs:
    """Tests for stored connection configuration."""

    def test_add_and_list(self, registry, descriptor):
        """Test that listings never carry passwords."""
        conn_id = registry.add_connection(descriptor)
        configs = registry.list_configs()

        assert len(configs) == 1
        assert configs[0]["id"] == conn_id
        assert configs[0]["name"] == "local"
        assert configs[0]["connected"] is False
        assert "password" not in configs[0]

    def test_get_config_decrypts(self, registry, descriptor):
        """Test the decrypted descriptor."""
        conn_id = registry.add_connection(descriptor)
        assert registry.get_config(conn_id).password == "s3cret"

    def test_persisted_encrypted(self, tmp_path, registry, descriptor, cipher):
        """Test the file contents, mode and reload."""
        conn_id = registry.add_connection(descriptor)
        path = tmp_path / "state" / CONNECTIONS_FILE

        entries = json.loads(path.read_text(encoding="utf-8"))
        assert entries[0]["id"] == conn_id
        assert entries[0]["password"] not in ("", "s3cret")
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

        reloaded = ConnectionRegistry(create_default_factory(), data_dir=tmp_path / "state", cipher=cipher)
        assert reloaded.get_config(conn_id).password == "s3cret"

    def test_reload_with_other_key(self, tmp_path, registry, descriptor):
        """Test that a changed key surfaces as a decryption error."""
        conn_id = registry.add_connection(descriptor)
        reloaded = ConnectionRegistry(
            create_default_factory(), data_dir=tmp_path / "state", cipher=PasswordCipher(generate_key())
        )
        with pytest.raises(RegistryError) as exc_info:
            reloaded.get_config(conn_id)
        assert exc_info.value.code is ErrorCode.ERR_DECRYPTION_FAILED

    def test_remove(self, registry, descriptor):
        """Test removal and unknown ids."""
        conn_id = registry.add_connection(descriptor)
        registry.remove_connection(conn_id)

        assert registry.list_configs() == []
        with pytest.raises(RegistryError) as exc_info:
            registry.get_config(conn_id)
        assert exc_info.value.code is ErrorCode.ERR_CONNECTION_NOT_FOUND
        with pytest.raises(RegistryError):
            registry.remove_connection(conn_id)

    def test_corrupt_file(self, tmp_path, cipher):
        """Test that an unreadable connections file is reported."""
        state = tmp_path / "state"
        state.mkdir()
        (state / CONNECTIONS_FILE).write_text("{not json", encoding="utf-8")

        with pytest.raises(RegistryError) as exc_info:
            ConnectionRegistry(create_default_factory(), data_dir=state, cipher=cipher)
        assert exc_info.value.code is ErrorCode.ERR_CONFIG_INVALID

    def test_in_memory_registry(self, tmp_path, cipher, descriptor):
        """Test that no file is written without a data directory."""
        registry = ConnectionRegistry(create_default_factory(), data_dir=None, cipher=cipher)
        registry.add_connection(descriptor)
        assert registry.config_file is None
        assert list(tmp_path.iterdir()) == []


class TestHandles:
    """Tests for live handle caching."""

    def test_resolve_caches_handle(self, registry, descriptor):
        """Test that the default catalog handle is reused."""
        conn_id = registry.add_connection(descriptor)
        first, config = registry.resolve(conn_id)
        second, _ = registry.resolve(conn_id)

        assert first is second
        assert config.password == "s3cret"
        assert registry.is_connection_active(conn_id)
        assert registry.list_configs()[0]["connected"] is True

    def test_other_catalog_is_not_cached(self, registry, descriptor):
        """Test that a handle for another catalog is returned uncached."""
        conn_id = registry.add_connection(descriptor)
        cached, _ = registry.resolve(conn_id)
        other, target = registry.resolve(conn_id, database="reporting")

        assert other is not cached
        assert target.database == "reporting"
        registry.factory.create_adapter(EngineKind.SQLITE).close(other)
        assert registry.resolve(conn_id)[0] is cached

    def test_close_all(self, registry, descriptor):
        """Test closing every cached handle."""
        conn_id = registry.add_connection(descriptor)
        registry.resolve(conn_id)

        assert registry.close_all() == 1
        assert not registry.is_connection_active(conn_id)
        assert registry.close_all() == 0

    def test_replacing_config_drops_handle(self, registry, descriptor):
        """Test that updating a connection closes its cached handle."""
        conn_id = registry.add_connection(descriptor)
        registry.resolve(conn_id)

        registry.add_connection(ConnectionDescriptor.from_dict({**descriptor.to_dict(), "id": conn_id}))
        assert not registry.is_connection_active(conn_id)

    def test_cache_handle_requires_known_id(self, registry):
        """Test that handles are only cached for registered connections."""
        with pytest.raises(RegistryError):
            registry.cache_handle("missing", object())

    def test_connect_runs_outside_the_lock(self, registry, descriptor, monkeypatch):
        """Test that a handle cached while connecting wins and the new one is closed."""
        conn_id = registry.add_connection(descriptor)
        adapter = registry.factory.create_adapter(EngineKind.SQLITE)
        winner, opened, closed = object(), object(), []

        def connect(config):
            other = threading.Thread(target=registry.cache_handle, args=(conn_id, winner))
            other.start()
            other.join(timeout=5)
            assert not other.is_alive()
            return opened

        monkeypatch.setattr(adapter, "connect", connect)
        monkeypatch.setattr(adapter, "close", closed.append)

        handle, _ = registry.resolve(conn_id)

        assert handle is winner
        assert closed == [opened]
        registry.close_connection(conn_id)
        assert closed == [opened, winner]


class TestProbe:
    """Tests for test_connection()."""

    def test_success(self, registry, descriptor):
        """Test a reachable database."""
        result = registry.test_connection(descriptor)
        assert result.success is True
        assert result.latency_ms is not None

    def test_failure(self, registry, tmp_path):
        """Test that a failure is reported, not raised."""
        descriptor = ConnectionDescriptor(
            engine=EngineKind.SQLITE,
            host=str(tmp_path / "missing.db"),
            params={"read_only": "true"},
        )
        result = registry.test_connection(descriptor)
        assert result.success is False
        assert "Failed to open SQLite database" in result.error
