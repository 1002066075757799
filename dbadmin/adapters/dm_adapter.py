"""
DM (Dameng) Adapter

DM follows the Oracle catalog layout (ALL_* views, DBMS_METADATA) but
accepts ? placeholders and LIMIT. A "database" is an owner/schema.

Requires the optional ``dmPython`` driver (``pip install dbadmin[dm]``).
"""

import logging
from typing import Any, List
from urllib.parse import quote

try:
    import dmPython
    DMPYTHON_AVAILABLE = True
except ImportError:
    DMPYTHON_AVAILABLE = False
    dmPython = None

from dbadmin.adapters.base import declared_type, group_index_rows, is_default_expression
from dbadmin.adapters.sql_base import DBAPIAdapter
from dbadmin.errors import ConnectionError, driver_missing
from dbadmin.models import (
    AddColumn,
    AddIndex,
    AlterTableAction,
    AlterTableRequest,
    ColumnDef,
    ColumnInfo,
    ConnectionDescriptor,
    DropColumn,
    DropIndex,
    EngineKind,
    ModifyColumn,
    RenameColumn,
    RoutineInfo,
    ROUTINE_FUNCTION,
    ROUTINE_PROCEDURE,
    TableInfo,
    TableSchema,
    TABLE_TYPE_BASE,
    TABLE_TYPE_VIEW,
)

logger = logging.getLogger(__name__)

SYSTEM_OWNERS = ("SYS", "SYSTEM", "SYSAUX", "SYSDBA")

PASSTHROUGH_DEFAULTS = ("NULL", "CURRENT_TIMESTAMP", "SYSDATE", "NOW()")


def dm_type_string(data_type: str, length: Any = None, precision: Any = None, scale: Any = None) -> str:
    dt = (data_type or "").upper()
    if dt in ("VARCHAR", "VARCHAR2", "CHAR") and length:
        return f"{dt}({int(length)})"
    if dt in ("NUMBER", "DECIMAL", "NUMERIC") and precision:
        if scale:
            return f"{dt}({int(precision)},{int(scale)})"
        return f"{dt}({int(precision)})"
    return dt


class DMAdapter(DBAPIAdapter):
    """
    Adapter for DM (Dameng) via dmPython.

    Descriptor:
        host / port: Server address (default port: 5236)
        username / password: Credentials
        database: Default schema
        params: Shown in the DSN; ``schema`` overrides database
    """

    ENGINE = EngineKind.DM
    PLACEHOLDER = "?"
    IDENTIFIER_QUOTE = '"'
    QUERY_KEYWORDS = ("SELECT", "DESC", "EXPLAIN", "WITH")

    DEFAULT_PORT = 5236

    def quote_identifier(self, name: str) -> str:
        return super().quote_identifier(name.upper())

    def build_dsn(self, descriptor: ConnectionDescriptor) -> str:
        """
        Display form ``dm://user:pass@host[:port][?params]``.

        When no params are given, the schema comes from ``database``.
        """
        user_pass = ""
        if descriptor.username:
            user_pass = quote(descriptor.username, safe="")
            if descriptor.password:
                user_pass += ":" + quote(descriptor.password, safe="")

        host_port = descriptor.host
        if descriptor.port:
            host_port = f"{descriptor.host}:{descriptor.port}"

        dsn = f"dm://{user_pass}@{host_port}" if user_pass else f"dm://{host_port}"

        params = [f"{k}={v}" for k, v in sorted(descriptor.params.items())]
        if not params and descriptor.database:
            params.append(f"schema={descriptor.database}")
        if params:
            dsn = f"{dsn}?{'&'.join(params)}"
        return dsn

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        if not DMPYTHON_AVAILABLE:
            raise driver_missing(self.engine_name, "dmPython")

        logger.info(f"Connecting to DM: {self.build_dsn(descriptor.masked())}")
        schema = descriptor.param("schema") or descriptor.database
        try:
            return dmPython.connect(
                user=descriptor.username,
                password=descriptor.password,
                server=descriptor.host or "localhost",
                port=descriptor.port or self.DEFAULT_PORT,
                schema=schema.upper() if schema else None,
            )
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to DM: {e}",
                engine=self.engine_name,
                original_error=e,
            )

    # ----- metadata -----

    def get_databases(self, handle: Any) -> List[str]:
        owners = ", ".join(f"'{o}'" for o in SYSTEM_OWNERS)
        return self.fetch_values(
            handle,
            f"""
            SELECT DISTINCT OWNER FROM ALL_OBJECTS
            WHERE OBJECT_TYPE IN ('TABLE', 'VIEW') AND OWNER NOT IN ({owners})
            ORDER BY OWNER
            """,
        )

    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        names = self.fetch_values(
            handle,
            "SELECT TABLE_NAME FROM ALL_TABLES WHERE OWNER = ? ORDER BY TABLE_NAME",
            [database.upper()],
        )
        return [
            TableInfo(name=name, database=database, schema=database, table_type=TABLE_TYPE_BASE)
            for name in names
        ]

    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        owner, name = database.upper(), table.upper()

        _, col_rows = self.fetch_all(
            handle,
            """
            SELECT c.COLUMN_NAME, c.DATA_TYPE, c.NULLABLE, c.DATA_DEFAULT,
                   c.DATA_LENGTH, c.DATA_PRECISION, c.DATA_SCALE, m.COMMENTS
            FROM ALL_TAB_COLUMNS c
            LEFT JOIN ALL_COL_COMMENTS m
              ON m.OWNER = c.OWNER AND m.TABLE_NAME = c.TABLE_NAME AND m.COLUMN_NAME = c.COLUMN_NAME
            WHERE c.OWNER = ? AND c.TABLE_NAME = ?
            ORDER BY c.COLUMN_ID
            """,
            [owner, name],
        )
        columns = [
            ColumnInfo(
                name=col_name,
                type=dm_type_string(data_type, length, precision, scale),
                nullable=nullable == "Y",
                default_value=str(default).strip() if default is not None else None,
                comment=comment or "",
            )
            for col_name, data_type, nullable, default, length, precision, scale, comment in col_rows
        ]

        _, idx_rows = self.fetch_all(
            handle,
            """
            SELECT ic.INDEX_NAME, ic.COLUMN_NAME, i.UNIQUENESS, i.INDEX_TYPE
            FROM ALL_IND_COLUMNS ic
            LEFT JOIN ALL_INDEXES i ON ic.INDEX_NAME = i.INDEX_NAME AND ic.TABLE_OWNER = i.TABLE_OWNER
            WHERE ic.TABLE_OWNER = ? AND ic.TABLE_NAME = ?
            ORDER BY ic.INDEX_NAME, ic.COLUMN_POSITION
            """,
            [owner, name],
        )
        indexes = group_index_rows(
            (
                (index_name, column, uniqueness == "UNIQUE", False, index_type or "")
                for index_name, column, uniqueness, index_type in idx_rows
            ),
            engine=self.engine_name,
            table=f"{owner}.{name}",
        )

        return TableSchema(database=database, schema=database, table=table, columns=columns, indexes=indexes)

    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        names = self.fetch_values(
            handle,
            "SELECT VIEW_NAME FROM ALL_VIEWS WHERE OWNER = ? ORDER BY VIEW_NAME",
            [database.upper()],
        )
        return [
            TableInfo(name=name, database=database, schema=database, table_type=TABLE_TYPE_VIEW)
            for name in names
        ]

    def get_procedures(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, ROUTINE_PROCEDURE)

    def get_functions(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, ROUTINE_FUNCTION)

    def _routines(self, handle: Any, database: str, routine_type: str) -> List[RoutineInfo]:
        names = self.fetch_values(
            handle,
            "SELECT OBJECT_NAME FROM ALL_OBJECTS WHERE OWNER = ? AND OBJECT_TYPE = ? ORDER BY OBJECT_NAME",
            [database.upper(), routine_type],
        )
        return [
            RoutineInfo(name=name, routine_type=routine_type, database=database, schema=database)
            for name in names
        ]

    def _get_ddl(self, handle: Any, object_type: str, database: str, name: str) -> str:
        value = self.fetch_scalar(
            handle,
            "SELECT DBMS_METADATA.GET_DDL(?, ?, ?) FROM DUAL",
            [object_type.upper(), name.upper(), database.upper()],
        )
        return str(value or "").strip()

    def get_view_definition(self, handle: Any, database: str, view: str) -> str:
        return self._get_ddl(handle, "VIEW", database, view)

    def get_routine_definition(self, handle: Any, database: str, name: str, routine_type: str) -> str:
        return self._get_ddl(handle, routine_type, database, name)

    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        return self._get_ddl(handle, "TABLE", database, table)

    # ----- DDL -----

    def format_default(self, value: str) -> str:
        if value.upper() in PASSTHROUGH_DEFAULTS:
            return value.upper()
        if is_default_expression(value):
            return value.strip()
        return self.quote_string(value)

    def build_column_type(self, column: ColumnDef) -> str:
        base = column.type.strip().upper()
        length = column.length if base in ("VARCHAR", "VARCHAR2", "CHAR") else 0
        precision = column.precision if not length and base in ("NUMBER", "DECIMAL", "NUMERIC") else 0
        parts = [declared_type(column.type, length, precision, column.scale)]

        if not column.nullable:
            parts.append("NOT NULL")

        if column.default_value is not None:
            parts.append(f"DEFAULT {self.format_default(column.default_value)}")

        if column.auto_increment:
            parts.append("IDENTITY(1,1)")

        return " ".join(parts)

    def build_action_sql(self, request: AlterTableRequest, action: AlterTableAction) -> List[str]:
        q = self.quote_identifier
        ref = self.table_ref(request.database, request.table)

        if isinstance(action, AddColumn):
            return [f"ALTER TABLE {ref} ADD {q(action.column.name)} {self.build_column_type(action.column)}"]
        if isinstance(action, DropColumn):
            return [f"ALTER TABLE {ref} DROP COLUMN {q(action.name)}"]
        if isinstance(action, ModifyColumn):
            return [f"ALTER TABLE {ref} MODIFY {q(action.column.name)} {self.build_column_type(action.column)}"]
        if isinstance(action, RenameColumn):
            return [f"ALTER TABLE {ref} RENAME COLUMN {q(action.old_name)} TO {q(action.new_name)}"]
        if isinstance(action, AddIndex):
            index = action.index
            unique = "UNIQUE " if index.unique else ""
            columns = ", ".join(q(c) for c in index.columns)
            return [f"CREATE {unique}INDEX {q(index.name)} ON {ref} ({columns})"]
        if isinstance(action, DropIndex):
            return [f"DROP INDEX {self.table_ref(request.database, action.name)}"]
        raise TypeError(f"unknown alter action: {action!r}")
