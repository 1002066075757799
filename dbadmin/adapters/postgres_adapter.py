"""
PostgreSQL Adapter

PostgreSQL has a namespace level below the catalog, so this adapter also
implements SchemaAware. Reads that take no schema use "public".

ALTER TABLE requests are executed one statement per action; modifying a
column takes up to three statements (type, nullability, default).
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

try:
    import psycopg2
    PSYCOPG2_AVAILABLE = True
except ImportError:
    PSYCOPG2_AVAILABLE = False
    psycopg2 = None

from dbadmin.adapters.base import SchemaAware, declared_type, group_index_rows, is_default_expression
from dbadmin.adapters.sql_base import DBAPIAdapter
from dbadmin.core.config import get_settings
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

DEFAULT_SCHEMA = "public"

PASSTHROUGH_DEFAULTS = ("NULL", "CURRENT_TIMESTAMP", "CURRENT_DATE", "NOW()", "TRUE", "FALSE")


def libpq_value(value: Any) -> str:
    """Quote a value for a libpq key=value connection string."""
    text = str(value)
    if text and not any(ch in text for ch in " '\\"):
        return text
    escaped = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class PostgresAdapter(DBAPIAdapter, SchemaAware):
    """
    Adapter for PostgreSQL.

    Descriptor:
        host: Server host
        port: Server port (default: 5432)
        username / password: Credentials
        database: Catalog to connect to (dbname)
        params: Extra libpq keywords (sslmode defaults to "prefer")

    Example:
        adapter = PostgresAdapter()
        conn = adapter.connect(ConnectionDescriptor(
            engine=EngineKind.POSTGRESQL, host="localhost",
            username="postgres", password="secret", database="analytics",
        ))
        schemas = adapter.get_schemas(conn, "analytics")
    """

    ENGINE = EngineKind.POSTGRESQL
    PLACEHOLDER = "%s"
    IDENTIFIER_QUOTE = '"'
    QUERY_KEYWORDS = ("SELECT", "SHOW", "EXPLAIN", "WITH", "VALUES", "TABLE")

    DEFAULT_PORT = 5432
    DEFAULT_SSLMODE = "prefer"

    def __init__(self, engine: Optional[EngineKind] = None):
        # Wire-compatible engines reuse this adapter under their own name
        if engine is not None:
            self.ENGINE = engine

    # ----- lifecycle -----

    def build_dsn(
        self,
        descriptor: ConnectionDescriptor,
        default_port: Optional[int] = None,
        sslmode: Optional[str] = None,
    ) -> str:
        """libpq key=value connection string."""
        params: Dict[str, str] = dict(descriptor.params)
        parts: List[Tuple[str, Any]] = [
            ("host", descriptor.host or "localhost"),
            ("port", descriptor.port or default_port or self.DEFAULT_PORT),
            ("user", descriptor.username),
        ]
        if descriptor.password:
            parts.append(("password", descriptor.password))
        if descriptor.database:
            parts.append(("dbname", descriptor.database))

        parts.append(("sslmode", sslmode or params.pop("sslmode", self.DEFAULT_SSLMODE)))
        if sslmode:
            params.pop("sslmode", None)
        params.setdefault("connect_timeout", str(get_settings().connect_timeout))
        parts.extend(params.items())

        return " ".join(f"{key}={libpq_value(value)}" for key, value in parts)

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        return self.connect_dsn(descriptor, self.build_dsn(descriptor))

    def connect_dsn(self, descriptor: ConnectionDescriptor, dsn: str) -> Any:
        if not PSYCOPG2_AVAILABLE:
            raise driver_missing(self.engine_name, "psycopg2-binary")

        logger.info(
            f"Connecting to {self.engine_name}: {descriptor.username}@{descriptor.host}:{descriptor.port}/{descriptor.database}"
        )
        try:
            return psycopg2.connect(dsn)
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to {self.engine_name}: {e}",
                engine=self.engine_name,
                original_error=e,
            )

    # ----- metadata -----

    def table_ref(self, database: str, table: str) -> str:
        """
        ``database`` is the connected catalog and cannot qualify a name;
        a "schema.table" name selects a schema other than public.
        """
        schema, name = split_schema(table)
        return f"{self.quote_identifier(schema)}.{self.quote_identifier(name)}"

    def get_databases(self, handle: Any) -> List[str]:
        return self.list_databases(handle)

    def list_databases(self, handle: Any, exclude: Sequence[str] = ()) -> List[str]:
        sql = "SELECT datname FROM pg_database WHERE datistemplate = false"
        if exclude:
            sql += f" AND datname NOT IN ({', '.join('?' for _ in exclude)})"
        sql += " ORDER BY datname"
        return self.fetch_values(handle, sql, list(exclude))

    def get_schemas(self, handle: Any, database: str) -> List[str]:
        return self.fetch_values(
            handle,
            """
            SELECT schema_name
            FROM information_schema.schemata
            WHERE schema_name NOT IN ('pg_catalog', 'information_schema', 'pg_toast')
            ORDER BY schema_name
            """,
        )

    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        return self.get_tables_with_schema(handle, database, DEFAULT_SCHEMA)

    def get_tables_with_schema(self, handle: Any, database: str, schema: str) -> List[TableInfo]:
        _, rows = self.fetch_all(
            handle,
            """
            SELECT t.table_name,
                   COALESCE(s.n_live_tup, 0),
                   COALESCE(pg_total_relation_size(c.oid), 0),
                   COALESCE(obj_description(c.oid, 'pg_class'), '')
            FROM information_schema.tables t
            JOIN pg_namespace n ON n.nspname = t.table_schema
            JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
            LEFT JOIN pg_stat_user_tables s ON s.relid = c.oid
            WHERE t.table_schema = ? AND t.table_type = 'BASE TABLE'
            ORDER BY t.table_name
            """,
            [schema],
        )
        return [
            TableInfo(
                name=name,
                database=database,
                schema=schema,
                table_type=TABLE_TYPE_BASE,
                rows=int(live_rows or 0),
                size=int(size or 0),
                comment=comment or "",
            )
            for name, live_rows, size, comment in rows
        ]

    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        schema, name = split_schema(table)
        return self.get_table_schema_with_schema(handle, database, schema, name)

    def get_table_schema_with_schema(self, handle: Any, database: str, schema: str, table: str) -> TableSchema:
        # format_type keeps the declared modifiers (varchar(255), numeric(10,2))
        _, col_rows = self.fetch_all(
            handle,
            """
            SELECT a.attname,
                   format_type(a.atttypid, a.atttypmod),
                   CASE WHEN a.attnotnull THEN 'NO' ELSE 'YES' END,
                   pg_get_expr(d.adbin, d.adrelid),
                   COALESCE((
                       SELECT CASE WHEN con.contype = 'p' THEN 'PRI' ELSE 'UNI' END
                       FROM pg_constraint con
                       WHERE con.conrelid = c.oid
                         AND con.contype IN ('p', 'u')
                         AND a.attnum = ANY(con.conkey)
                       ORDER BY con.contype
                       LIMIT 1
                   ), ''),
                   COALESCE(col_description(c.oid, a.attnum), '')
            FROM pg_attribute a
            JOIN pg_class c ON c.oid = a.attrelid
            JOIN pg_namespace n ON n.oid = c.relnamespace
            LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
            WHERE n.nspname = ? AND c.relname = ? AND a.attnum > 0 AND NOT a.attisdropped
            ORDER BY a.attnum
            """,
            [schema, table],
        )
        columns = []
        for name, data_type, nullable, default, key, comment in col_rows:
            serial = bool(default) and str(default).startswith("nextval(")
            columns.append(
                ColumnInfo(
                    name=name,
                    type=data_type,
                    nullable=nullable == "YES",
                    default_value=None if serial else default,
                    key=key or "",
                    extra="auto_increment" if serial else "",
                    comment=comment or "",
                )
            )

        return TableSchema(
            database=database,
            schema=schema,
            table=table,
            columns=columns,
            indexes=self.get_indexes_with_schema(handle, schema, table),
        )

    def get_indexes_with_schema(self, handle: Any, schema: str, table: str):
        # Expression index members have attnum 0 and resolve no column.
        _, rows = self.fetch_all(
            handle,
            """
            SELECT ic.relname, a.attname, i.indisunique, i.indisprimary, am.amname
            FROM pg_index i
            JOIN pg_class t ON t.oid = i.indrelid
            JOIN pg_class ic ON ic.oid = i.indexrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            JOIN pg_am am ON am.oid = ic.relam
            CROSS JOIN LATERAL unnest(i.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord)
            LEFT JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE n.nspname = ? AND t.relname = ?
            ORDER BY ic.relname, k.ord
            """,
            [schema, table],
        )
        return group_index_rows(rows, engine=self.engine_name, table=f"{schema}.{table}")

    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        return self.get_views_with_schema(handle, database, DEFAULT_SCHEMA)

    def get_views_with_schema(self, handle: Any, database: str, schema: str) -> List[TableInfo]:
        names = self.fetch_values(
            handle,
            """
            SELECT table_name
            FROM information_schema.views
            WHERE table_schema = ?
            ORDER BY table_name
            """,
            [schema],
        )
        return [
            TableInfo(name=name, database=database, schema=schema, table_type=TABLE_TYPE_VIEW)
            for name in names
        ]

    def get_procedures(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, DEFAULT_SCHEMA, ROUTINE_PROCEDURE)

    def get_functions(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, DEFAULT_SCHEMA, ROUTINE_FUNCTION)

    def _routines(self, handle: Any, database: str, schema: str, routine_type: str) -> List[RoutineInfo]:
        names = self.fetch_values(
            handle,
            """
            SELECT DISTINCT routine_name
            FROM information_schema.routines
            WHERE routine_schema = ? AND routine_type = ?
            ORDER BY routine_name
            """,
            [schema, routine_type],
        )
        return [
            RoutineInfo(name=name, routine_type=routine_type, database=database, schema=schema)
            for name in names
        ]

    def get_view_definition(self, handle: Any, database: str, view: str) -> str:
        schema, name = split_schema(view)
        definition = self.fetch_scalar(
            handle,
            "SELECT pg_get_viewdef((quote_ident(?) || '.' || quote_ident(?))::regclass, true)",
            [schema, name],
        )
        return definition or ""

    def get_routine_definition(self, handle: Any, database: str, name: str, routine_type: str) -> str:
        schema, routine = split_schema(name)
        definition = self.fetch_scalar(
            handle,
            """
            SELECT pg_get_functiondef(p.oid)
            FROM pg_proc p
            JOIN pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname = ? AND p.proname = ?
            LIMIT 1
            """,
            [schema, routine],
        )
        return definition or ""

    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        schema, name = split_schema(table)
        definition = self.fetch_scalar(
            handle,
            """
            SELECT 'CREATE TABLE ' || quote_ident(n.nspname) || '.' || quote_ident(c.relname) || ' (' ||
                   string_agg(
                       quote_ident(a.attname) || ' ' || format_type(a.atttypid, a.atttypmod) ||
                       CASE WHEN a.attnotnull THEN ' NOT NULL' ELSE '' END ||
                       COALESCE(' DEFAULT ' || pg_get_expr(d.adbin, d.adrelid), ''),
                       ', ' ORDER BY a.attnum
                   ) || ');'
            FROM pg_attribute a
            JOIN pg_class c ON c.oid = a.attrelid
            JOIN pg_namespace n ON n.oid = c.relnamespace
            LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
            WHERE n.nspname = ? AND c.relname = ? AND a.attnum > 0 AND NOT a.attisdropped
            GROUP BY n.nspname, c.relname
            """,
            [schema, name],
        )
        return definition or ""

    # ----- DDL -----

    def base_type(self, column: ColumnDef) -> str:
        if column.auto_increment:
            name = column.type.strip().partition("(")[0].upper()
            if name in ("BIGINT", "INT8"):
                return "BIGSERIAL"
            if name in ("SMALLINT", "INT2"):
                return "SMALLSERIAL"
            if "INT" in name:
                return "SERIAL"
        return declared_type(column.type, column.length, column.precision, column.scale)

    def format_default(self, value: str) -> str:
        if value.upper() in PASSTHROUGH_DEFAULTS:
            return value.upper()
        # pg_get_expr output ('x'::character varying, 0, now()) is already SQL
        if is_default_expression(value):
            return value.strip()
        return self.quote_string(value)

    def build_column_type(self, column: ColumnDef) -> str:
        parts = [self.base_type(column)]
        if not column.nullable:
            parts.append("NOT NULL")
        if column.default_value is not None:
            parts.append(f"DEFAULT {self.format_default(column.default_value)}")
        return " ".join(parts)

    def build_action_sql(self, request: AlterTableRequest, action: AlterTableAction) -> List[str]:
        q = self.quote_identifier
        if request.schema:
            schema_name, table = request.schema, request.table
        else:
            schema_name, table = split_schema(request.table)
        schema = q(schema_name)
        ref = f"{schema}.{q(table)}"

        if isinstance(action, AddColumn):
            return [f"ALTER TABLE {ref} ADD COLUMN {q(action.column.name)} {self.build_column_type(action.column)}"]
        if isinstance(action, DropColumn):
            return [f"ALTER TABLE {ref} DROP COLUMN {q(action.name)}"]
        if isinstance(action, ModifyColumn):
            return self._modify_column(ref, action.column)
        if isinstance(action, RenameColumn):
            return [f"ALTER TABLE {ref} RENAME COLUMN {q(action.old_name)} TO {q(action.new_name)}"]
        if isinstance(action, AddIndex):
            index = action.index
            unique = "UNIQUE " if index.unique else ""
            using = f" USING {index.index_type.lower()}" if index.index_type else ""
            columns = ", ".join(q(c) for c in index.columns)
            return [f"CREATE {unique}INDEX {q(index.name)} ON {ref}{using} ({columns})"]
        if isinstance(action, DropIndex):
            return [f"DROP INDEX {schema}.{q(action.name)}"]
        raise TypeError(f"unknown alter action: {action!r}")

    def _modify_column(self, ref: str, column: ColumnDef) -> List[str]:
        target = f"ALTER TABLE {ref} ALTER COLUMN {self.quote_identifier(column.name)}"
        statements = [
            f"{target} TYPE {declared_type(column.type, column.length, column.precision, column.scale)}",
            f"{target} DROP NOT NULL" if column.nullable else f"{target} SET NOT NULL",
        ]
        if column.default_value is not None:
            if column.default_value.upper() == "NULL":
                statements.append(f"{target} DROP DEFAULT")
            else:
                statements.append(f"{target} SET DEFAULT {self.format_default(column.default_value)}")
        return statements


def split_schema(name: str) -> Tuple[str, str]:
    """Split "schema.table" into its parts; bare names live in public."""
    if "." in name:
        schema, _, table = name.partition(".")
        if schema and table:
            return schema, table
    return DEFAULT_SCHEMA, name
