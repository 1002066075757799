"""
Adapter Factory

Resolves an engine identifier to its adapter. The set of engines is fixed
when the factory is built; there is no module-level instance, callers
construct one at startup and pass it along.

Usage:
    from dbadmin.adapters.factory import create_default_factory

    factory = create_default_factory()
    adapter = factory.create_adapter("postgresql")
    handle = adapter.connect(descriptor)
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping

from dbadmin.adapters.base import DatabaseAdapter
from dbadmin.errors import ConfigurationError, unknown_engine
from dbadmin.models import EngineKind

logger = logging.getLogger(__name__)

AdapterBuilder = Callable[[], DatabaseAdapter]


def default_registry() -> Dict[EngineKind, AdapterBuilder]:
    """Built-in engines. MSSQL is declared in EngineKind but has no adapter."""
    from dbadmin.adapters.clickhouse_adapter import ClickHouseAdapter
    from dbadmin.adapters.dm_adapter import DMAdapter
    from dbadmin.adapters.kingbase_adapter import KingBaseAdapter
    from dbadmin.adapters.mongodb_adapter import MongoDBAdapter
    from dbadmin.adapters.mysql_adapter import MySQLAdapter
    from dbadmin.adapters.oracle_adapter import OracleAdapter
    from dbadmin.adapters.postgres_adapter import PostgresAdapter
    from dbadmin.adapters.sqlite_adapter import SQLiteAdapter

    return {
        EngineKind.MYSQL: MySQLAdapter,
        EngineKind.POSTGRESQL: PostgresAdapter,
        EngineKind.KINGBASE: KingBaseAdapter,
        EngineKind.SQLITE: SQLiteAdapter,
        EngineKind.CLICKHOUSE: ClickHouseAdapter,
        EngineKind.ORACLE: OracleAdapter,
        EngineKind.DM: DMAdapter,
        EngineKind.MONGODB: MongoDBAdapter,
    }


class AdapterFactory:
    """
    Immutable engine -> adapter registry.

    Adapters are stateless, so each engine gets one shared instance, built
    when the factory is constructed.
    """

    def __init__(self, registry: Mapping[EngineKind, AdapterBuilder]):
        adapters = {}
        for kind, builder in registry.items():
            adapters[EngineKind.parse(kind)] = builder()
        self._adapters = MappingProxyType(adapters)
        logger.debug(f"Adapter factory ready: {', '.join(self.supported_types())}")

    @property
    def adapters(self) -> Mapping[EngineKind, DatabaseAdapter]:
        return self._adapters

    def create_adapter(self, kind: Any) -> DatabaseAdapter:
        """
        Adapter for ``kind`` (an EngineKind or its string value).

        Raises:
            ConfigurationError: If the engine is unknown or has no adapter
        """
        try:
            engine = EngineKind.parse(kind)
        except ConfigurationError:
            raise unknown_engine(str(kind), self.supported_types())

        adapter = self._adapters.get(engine)
        if adapter is None:
            raise unknown_engine(engine.value, self.supported_types())
        return adapter

    def is_supported(self, kind: Any) -> bool:
        try:
            return EngineKind.parse(kind) in self._adapters
        except ConfigurationError:
            return False

    def supported_types(self) -> List[str]:
        return sorted(kind.value for kind in self._adapters)

    def get_engines_info(self) -> Dict[str, Any]:
        """Capability summary for every registered engine."""
        return {kind.value: adapter.get_engine_info() for kind, adapter in self._adapters.items()}


def create_default_factory() -> AdapterFactory:
    return AdapterFactory(default_registry())
