"""
Database Adapters for dbadmin

One adapter per engine, all implementing the DatabaseAdapter contract.
Each adapter handles:
- Catalog introspection (databases, tables, columns, indexes, routines)
- Free-form statement execution and result decoding
- Parameterized row mutation
- ALTER TABLE translation

Supported Engines:
- MySQL
- PostgreSQL
- KingBase (delegates to PostgreSQL)
- SQLite (built-in, zero dependencies)
- ClickHouse (HTTP interface)
- Oracle Database
- DM (Dameng, optional driver)
- MongoDB
"""

from dbadmin.adapters.base import (
    DatabaseAdapter,
    SchemaAware,
    StatementKind,
    as_schema_aware,
    classify_statement,
    list_schemas,
)
from dbadmin.adapters.factory import AdapterFactory, create_default_factory, default_registry

__all__ = [
    "DatabaseAdapter",
    "SchemaAware",
    "StatementKind",
    "as_schema_aware",
    "classify_statement",
    "list_schemas",
    "AdapterFactory",
    "create_default_factory",
    "default_registry",
]
