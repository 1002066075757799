"""
Connection Registry

Keeps connection descriptors, persists them with encrypted passwords, and
hands out live handles. One handle per connection id is cached for the
default catalog; a handle opened for another catalog is returned to the
caller uncached and is the caller's to close.

Persistence: ``<data_dir>/connections.json`` (mode 0600), passwords
encrypted with PasswordCipher. Without a data_dir the registry is
in-memory only.
"""

import json
import logging
import os
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dbadmin.adapters.factory import AdapterFactory
from dbadmin.connection.crypto import PasswordCipher
from dbadmin.core.config import get_settings
from dbadmin.errors import DbAdminError, ErrorCode, RegistryError, connection_not_found
from dbadmin.models import ConnectionDescriptor, ConnectionTestResult

logger = logging.getLogger(__name__)

CONNECTIONS_FILE = "connections.json"


class ConnectionRegistry:
    """
    Usage:
        registry = ConnectionRegistry(create_default_factory(), data_dir=Path("~/.dbadmin"))
        conn_id = registry.add_connection(descriptor)
        handle, config = registry.resolve(conn_id)
        adapter = registry.factory.create_adapter(config.engine)
        adapter.get_tables(handle, config.database)
    """

    def __init__(
        self,
        factory: AdapterFactory,
        data_dir: Optional[Path] = None,
        cipher: Optional[PasswordCipher] = None,
    ):
        self.factory = factory
        if data_dir is None:
            data_dir = get_settings().data_dir
        self.data_dir = Path(data_dir).expanduser() if data_dir else None
        self.cipher = cipher or PasswordCipher()

        self._lock = threading.RLock()
        # Passwords in _configs are encrypted
        self._configs: Dict[str, ConnectionDescriptor] = {}
        self._passwords: Dict[str, str] = {}
        self._handles: Dict[str, Any] = {}

        self._load()

    # ----- configuration -----

    def add_connection(self, descriptor: ConnectionDescriptor) -> str:
        """Store (or replace) a connection; returns its id."""
        conn_id = descriptor.id or uuid.uuid4().hex
        stored = ConnectionDescriptor.from_dict(
            {**descriptor.to_dict(), "id": conn_id, "password": self.cipher.encrypt(descriptor.password)}
        )
        with self._lock:
            replaced = conn_id in self._configs
            if replaced:
                self._close_handle(conn_id)
            self._configs[conn_id] = stored
            self._passwords[conn_id] = descriptor.password
            self._save()

        logger.info(
            f"{'Updated' if replaced else 'Added'} {stored.engine.value} connection {stored.name or conn_id}",
            extra={"connection_id": conn_id},
        )
        return conn_id

    def remove_connection(self, connection_id: str) -> None:
        with self._lock:
            if connection_id not in self._configs:
                raise connection_not_found(connection_id)
            self._close_handle(connection_id)
            del self._configs[connection_id]
            self._passwords.pop(connection_id, None)
            self._save()
        logger.info("Removed connection", extra={"connection_id": connection_id})

    def get_config(self, connection_id: str) -> ConnectionDescriptor:
        """Descriptor with the decrypted password."""
        with self._lock:
            stored = self._configs.get(connection_id)
            if stored is None:
                raise connection_not_found(connection_id)

            password = self._passwords.get(connection_id)
            if password is None:
                password = self.cipher.decrypt(stored.password, connection_id)
                self._passwords[connection_id] = password

        return ConnectionDescriptor.from_dict({**stored.to_dict(), "password": password})

    def list_configs(self) -> List[Dict[str, Any]]:
        """Every connection with the password blanked and a ``connected`` flag."""
        with self._lock:
            return [
                {**config.to_dict(), "connected": conn_id in self._handles}
                for conn_id, config in self._configs.items()
            ]

    # ----- handles -----

    def resolve(self, connection_id: str, database: Optional[str] = None) -> Tuple[Any, ConnectionDescriptor]:
        """
        Live handle and decrypted descriptor for ``connection_id``.

        With ``database`` naming a catalog other than the configured one, a
        fresh handle is opened and NOT cached.
        """
        config = self.get_config(connection_id)
        adapter = self.factory.create_adapter(config.engine)

        if database and database != config.database:
            target = config.with_database(database)
            logger.debug(f"Opening uncached handle for catalog {database}", extra={"connection_id": connection_id})
            return adapter.connect(target), target

        with self._lock:
            handle = self._handles.get(connection_id)
        if handle is not None:
            return handle, config

        # Connect without the lock; a handle cached meanwhile wins
        handle = adapter.connect(config)
        with self._lock:
            existing = self._handles.get(connection_id)
            if existing is None:
                self._handles[connection_id] = handle
        if existing is not None:
            adapter.close(handle)
            return existing, config

        logger.info("Connected", extra={"connection_id": connection_id})
        return handle, config

    def cache_handle(self, connection_id: str, handle: Any) -> None:
        with self._lock:
            if connection_id not in self._configs:
                raise connection_not_found(connection_id)
            self._handles[connection_id] = handle

    def is_connection_active(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._handles

    def close_connection(self, connection_id: str) -> None:
        with self._lock:
            handle = self._handles.pop(connection_id, None)
            config = self._configs.get(connection_id)
        if handle is not None and config is not None:
            self.factory.create_adapter(config.engine).close(handle)
            logger.info("Disconnected", extra={"connection_id": connection_id})

    def close_all(self) -> int:
        """Close every cached handle; returns how many were closed."""
        with self._lock:
            ids = list(self._handles)
        for conn_id in ids:
            self._close_handle(conn_id)
        return len(ids)

    def _close_handle(self, connection_id: str) -> None:
        try:
            self.close_connection(connection_id)
        except DbAdminError as e:
            logger.warning(f"Error closing handle: {e}", extra={"connection_id": connection_id})

    # ----- probing -----

    def test_connection(self, descriptor: ConnectionDescriptor) -> ConnectionTestResult:
        """Open, ping and close a handle for ``descriptor``."""
        start_time = time.perf_counter()
        try:
            adapter = self.factory.create_adapter(descriptor.engine)
            handle = adapter.connect(descriptor)
            try:
                adapter.ping(handle)
            finally:
                adapter.close(handle)
        except DbAdminError as e:
            logger.info(f"Connection test failed: {e}", extra={"connection_id": descriptor.id or "-"})
            return ConnectionTestResult(success=False, error=str(e))

        return ConnectionTestResult(success=True, latency_ms=(time.perf_counter() - start_time) * 1000)

    # ----- persistence -----

    @property
    def config_file(self) -> Optional[Path]:
        return self.data_dir / CONNECTIONS_FILE if self.data_dir else None

    def _load(self) -> None:
        path = self.config_file
        if path is None or not path.exists():
            return
        try:
            with open(path, "r", encoding="utf-8") as f:
                entries = json.load(f)
            for entry in entries or []:
                config = ConnectionDescriptor.from_dict(entry)
                self._configs[config.id] = config
        except (OSError, ValueError, DbAdminError) as e:
            raise RegistryError(
                f"Failed to load {path}: {e}",
                code=ErrorCode.ERR_CONFIG_INVALID,
                original_error=e,
                details={"path": str(path)},
            )
        logger.info(f"Loaded {len(self._configs)} connection(s) from {path}")

    def _save(self) -> None:
        path = self.config_file
        if path is None:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        entries = [config.to_dict(include_password=True) for config in self._configs.values()]

        tmp_path = path.with_suffix(".json.tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
        os.chmod(path, 0o600)
