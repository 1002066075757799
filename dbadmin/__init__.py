"""
dbadmin - Multi-engine database administration core.

One capability contract (DatabaseAdapter) over MySQL, PostgreSQL,
KingBase, SQLite, ClickHouse, Oracle, DM and MongoDB.

Usage:
    from dbadmin import ConnectionDescriptor, EngineKind, create_default_factory

    factory = create_default_factory()
    adapter = factory.create_adapter(EngineKind.SQLITE)
    handle = adapter.connect(ConnectionDescriptor(engine=EngineKind.SQLITE, host="app.db"))
    adapter.get_tables(handle, "main")
"""

from dbadmin.adapters import AdapterFactory, DatabaseAdapter, as_schema_aware, create_default_factory
from dbadmin.errors import DbAdminError
from dbadmin.models import ConnectionDescriptor, EngineKind

__version__ = "1.0.0"

__all__ = [
    "AdapterFactory",
    "ConnectionDescriptor",
    "DatabaseAdapter",
    "DbAdminError",
    "EngineKind",
    "as_schema_aware",
    "create_default_factory",
]
