"""
KingBase Adapter

KingBase speaks the PostgreSQL wire protocol and catalog. The adapter
holds a PostgresAdapter and forwards every shared operation to it,
overriding only the connection string and the database listing.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, TextIO

from dbadmin.adapters.base import DatabaseAdapter, SchemaAware
from dbadmin.adapters.postgres_adapter import PostgresAdapter
from dbadmin.models import (
    AlterResult,
    AlterTableRequest,
    ColumnDef,
    ConnectionDescriptor,
    CSVOptions,
    EngineKind,
    ExecuteResult,
    IndexInfo,
    QueryOptions,
    QueryResult,
    RoutineInfo,
    SQLOptions,
    TableInfo,
    TableSchema,
)

logger = logging.getLogger(__name__)


class KingBaseAdapter(DatabaseAdapter, SchemaAware):
    """
    Adapter for KingBase (Kingbase ES).

    Descriptor:
        host: Server host
        port: Server port (default: 54321)
        username / password: Credentials (default superuser is "system")
        database: Catalog to connect to
        params: Extra libpq keywords; SSL is disabled
    """

    ENGINE = EngineKind.KINGBASE
    IDENTIFIER_QUOTE = '"'

    DEFAULT_PORT = 54321

    def __init__(self, postgres: Optional[PostgresAdapter] = None):
        self._pg = postgres or PostgresAdapter(engine=EngineKind.KINGBASE)
        self.QUERY_KEYWORDS = self._pg.QUERY_KEYWORDS

    # ----- overrides -----

    def build_dsn(self, descriptor: ConnectionDescriptor) -> str:
        return self._pg.build_dsn(descriptor, default_port=self.DEFAULT_PORT, sslmode="disable")

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        return self._pg.connect_dsn(descriptor, self.build_dsn(descriptor))

    def get_databases(self, handle: Any) -> List[str]:
        return self._pg.list_databases(handle, exclude=("postgres",))

    # ----- delegated -----

    def ping(self, handle: Any) -> None:
        self._pg.ping(handle)

    def close(self, handle: Any) -> None:
        self._pg.close(handle)

    def get_schemas(self, handle: Any, database: str) -> List[str]:
        return self._pg.get_schemas(handle, database)

    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        return self._pg.get_tables(handle, database)

    def get_tables_with_schema(self, handle: Any, database: str, schema: str) -> List[TableInfo]:
        return self._pg.get_tables_with_schema(handle, database, schema)

    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        return self._pg.get_table_schema(handle, database, table)

    def get_table_schema_with_schema(self, handle: Any, database: str, schema: str, table: str) -> TableSchema:
        return self._pg.get_table_schema_with_schema(handle, database, schema, table)

    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        return self._pg.get_views(handle, database)

    def get_views_with_schema(self, handle: Any, database: str, schema: str) -> List[TableInfo]:
        return self._pg.get_views_with_schema(handle, database, schema)

    def get_indexes(self, handle: Any, database: str, table: str) -> List[IndexInfo]:
        return self._pg.get_indexes(handle, database, table)

    def get_procedures(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._pg.get_procedures(handle, database)

    def get_functions(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._pg.get_functions(handle, database)

    def get_view_definition(self, handle: Any, database: str, view: str) -> str:
        return self._pg.get_view_definition(handle, database, view)

    def get_routine_definition(self, handle: Any, database: str, name: str, routine_type: str) -> str:
        return self._pg.get_routine_definition(handle, database, name, routine_type)

    def insert(self, handle: Any, database: str, table: str, data: Dict[str, Any]) -> int:
        return self._pg.insert(handle, database, table, data)

    def update(self, handle: Any, database: str, table: str, data: Dict[str, Any], where: str) -> int:
        return self._pg.update(handle, database, table, data, where)

    def delete(self, handle: Any, database: str, table: str, where: str) -> int:
        return self._pg.delete(handle, database, table, where)

    def execute(self, handle: Any, sql: str, *args: Any) -> ExecuteResult:
        return self._pg.execute(handle, sql, *args)

    def query(self, handle: Any, sql: str, options: Optional[QueryOptions] = None) -> QueryResult:
        return self._pg.query(handle, sql, options)

    def alter_table(self, handle: Any, request: AlterTableRequest) -> AlterResult:
        return self._pg.alter_table(handle, request)

    def rename_table(self, handle: Any, database: str, old_name: str, new_name: str) -> None:
        self._pg.rename_table(handle, database, old_name, new_name)

    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        return self._pg.get_create_table_sql(handle, database, table)

    def export_to_csv(
        self, handle: Any, writer: TextIO, database: str, query: str, options: Optional[CSVOptions] = None
    ) -> None:
        self._pg.export_to_csv(handle, writer, database, query, options)

    def export_to_sql(
        self, handle: Any, writer: TextIO, database: str, tables: Sequence[str], options: Optional[SQLOptions] = None
    ) -> None:
        self._pg.export_to_sql(handle, writer, database, tables, options)

    def build_column_type(self, column: ColumnDef) -> str:
        return self._pg.build_column_type(column)

    def table_ref(self, database: str, table: str) -> str:
        return self._pg.table_ref(database, table)
