"""
Connection descriptors.

A ConnectionDescriptor is frozen: adapters receive it, read it and never
mutate it. Callers that need to point the same connection at another
catalog use ``with_database()`` to get a copy.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from dbadmin.errors import ConfigurationError, ErrorCode


class EngineKind(str, Enum):
    """Closed set of engine identifiers understood by the factory."""
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    KINGBASE = "kingbase"
    SQLITE = "sqlite"
    CLICKHOUSE = "clickhouse"
    ORACLE = "oracle"
    DM = "dm"
    MONGODB = "mongodb"
    # Declared for configuration compatibility; no adapter is registered.
    MSSQL = "mssql"

    @classmethod
    def parse(cls, value: Any) -> "EngineKind":
        """Accept an EngineKind or its string value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown engine kind '{value}'",
                code=ErrorCode.ERR_UNKNOWN_ENGINE,
                details={"engine": str(value), "supported": [e.value for e in cls]},
            )


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    Everything an adapter needs to open a live handle.

    Attributes:
        engine: Engine kind
        host: Server host (file path for SQLite)
        port: Server port (0 = engine default)
        username: Login user
        password: Decrypted password
        database: Default catalog (database / schema / owner)
        params: Free-form engine-specific parameters
        id: Registry id (optional)
        name: Display name (optional)
    """
    engine: EngineKind
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    database: str = ""
    params: Dict[str, str] = field(default_factory=dict)
    id: str = ""
    name: str = ""

    def with_database(self, database: str) -> "ConnectionDescriptor":
        """Copy of this descriptor targeting another catalog."""
        return replace(self, database=database, params=dict(self.params))

    def masked(self) -> "ConnectionDescriptor":
        """Copy with the password blanked, safe for logs and listings."""
        return replace(self, password="", params=dict(self.params))

    def param(self, key: str, default: str = "") -> str:
        return self.params.get(key, default) if self.params else default

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionDescriptor":
        """Build from the camelCase or snake_case configuration shape."""
        engine = data.get("engine") or data.get("type")
        if not engine:
            raise ConfigurationError("Connection config has no engine/type specified")

        port = data.get("port") or 0
        try:
            port = int(port)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Invalid port: {port!r}",
                details={"port": str(port)},
            )

        return cls(
            engine=EngineKind.parse(engine),
            host=data.get("host", "") or "",
            port=port,
            username=data.get("username", data.get("user", "")) or "",
            password=data.get("password", "") or "",
            database=data.get("database", "") or "",
            params={str(k): str(v) for k, v in (data.get("params") or {}).items()},
            id=data.get("id", "") or "",
            name=data.get("name", "") or "",
        )

    def to_dict(self, include_password: bool = False) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "name": self.name,
            "type": self.engine.value,
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "database": self.database,
            "params": dict(self.params),
        }
        if include_password:
            result["password"] = self.password
        return result


@dataclass
class ConnectionTestResult:
    """Outcome of a connect + ping probe."""
    success: bool
    error: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if self.error:
            result["error"] = self.error
        if self.latency_ms is not None:
            result["latency"] = f"{self.latency_ms:.1f}ms"
        return result
