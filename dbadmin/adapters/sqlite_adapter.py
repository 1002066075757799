"""
SQLite Adapter

Uses the standard library sqlite3 driver. A connection holds a single
database ("main"); the file path comes from the descriptor's host, or its
database when host is empty.

SQLite's ALTER TABLE cannot drop or retype a column. Such requests are
rejected up front; ``rebuild_table()`` is the explicit alternative.
"""

import logging
import sqlite3
from typing import Any, List, Optional, Sequence

from dbadmin.adapters.base import declared_type, group_index_rows, is_default_expression
from dbadmin.adapters.sql_base import DBAPIAdapter
from dbadmin.errors import ConnectionError, QueryError, ValidationError
from dbadmin.models import (
    AddColumn,
    AddIndex,
    AlterActionType,
    AlterTableAction,
    AlterTableRequest,
    ColumnDef,
    ColumnInfo,
    ConnectionDescriptor,
    DropIndex,
    EngineKind,
    RenameColumn,
    TableInfo,
    TableSchema,
    TABLE_TYPE_BASE,
    TABLE_TYPE_VIEW,
)

logger = logging.getLogger(__name__)

REBUILD_REQUIRED = "table rebuild required"

PASSTHROUGH_DEFAULTS = ("NULL", "CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME")


class SQLiteAdapter(DBAPIAdapter):
    """
    Adapter for SQLite.

    Descriptor:
        host: Database file path (or ":memory:")
        database: Used as the path when host is empty
        params:
            timeout: Busy timeout in seconds (default: 5.0)
            read_only: "true" opens the file read-only

    Example:
        adapter = SQLiteAdapter()
        conn = adapter.connect(ConnectionDescriptor(engine=EngineKind.SQLITE, host="./data.db"))
        adapter.get_tables(conn, "main")
    """

    ENGINE = EngineKind.SQLITE
    PLACEHOLDER = "?"
    IDENTIFIER_QUOTE = "`"
    QUERY_KEYWORDS = ("SELECT", "EXPLAIN", "PRAGMA", "WITH", "VALUES")
    UNSUPPORTED_ALTER_ACTIONS = {
        AlterActionType.DROP_COLUMN: REBUILD_REQUIRED,
        AlterActionType.MODIFY_COLUMN: REBUILD_REQUIRED,
    }

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        path = descriptor.host or descriptor.database
        if not path:
            raise ValidationError("SQLite connection needs a file path (host or database)", engine=self.engine_name)

        timeout = float(descriptor.param("timeout", "5.0"))
        read_only = descriptor.param("read_only", "false").lower() in ("1", "true", "yes")

        logger.info(f"Opening SQLite database: {path}{' (read-only)' if read_only else ''}")
        try:
            if read_only:
                return sqlite3.connect(f"file:{path}?mode=ro", uri=True, timeout=timeout, check_same_thread=False)
            return sqlite3.connect(path, timeout=timeout, check_same_thread=False)
        except sqlite3.Error as e:
            raise ConnectionError(
                f"Failed to open SQLite database: {e}",
                engine=self.engine_name,
                original_error=e,
            )

    def table_ref(self, database: str, table: str) -> str:
        return self.quote_identifier(table)

    # ----- metadata -----

    def get_databases(self, handle: Any) -> List[str]:
        return ["main"]

    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        _, rows = self.fetch_all(
            handle,
            """
            SELECT name, type FROM sqlite_master
            WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
            ORDER BY name
            """,
        )
        return [
            TableInfo(
                name=name,
                database=database,
                table_type=TABLE_TYPE_VIEW if kind == "view" else TABLE_TYPE_BASE,
            )
            for name, kind in rows
        ]

    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        create_sql = (self.get_create_table_sql(handle, database, table) or "").upper()

        # cid, name, type, notnull, dflt_value, pk
        _, col_rows = self.fetch_all(handle, f"PRAGMA table_info({self.quote_identifier(table)})")
        columns = []
        for _, name, col_type, notnull, default, pk in col_rows:
            columns.append(
                ColumnInfo(
                    name=name,
                    type=col_type or "",
                    nullable=not notnull and not pk,
                    default_value=default,
                    key="PRI" if pk else "",
                    extra="auto_increment" if pk and "AUTOINCREMENT" in create_sql else "",
                )
            )

        return TableSchema(
            database=database,
            table=table,
            columns=columns,
            indexes=self._indexes(handle, table),
        )

    def _indexes(self, handle: Any, table: str):
        # seq, name, unique, origin, partial
        _, index_rows = self.fetch_all(handle, f"PRAGMA index_list({self.quote_identifier(table)})")

        rows = []
        for index_row in index_rows:
            name, unique, origin = index_row[1], bool(index_row[2]), index_row[3]
            primary = origin == "pk" or name.startswith("sqlite_autoindex_")
            # seqno, cid, name
            _, info_rows = self.fetch_all(handle, f"PRAGMA index_info({self.quote_identifier(name)})")
            if not info_rows:
                rows.append((name, None, unique, primary, ""))
            for _, _, column in sorted(info_rows):
                rows.append((name, column, unique, primary, ""))

        return group_index_rows(rows, engine=self.engine_name, table=table)

    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        names = self.fetch_values(
            handle,
            "SELECT name FROM sqlite_master WHERE type = 'view' ORDER BY name",
        )
        return [TableInfo(name=name, database=database, table_type=TABLE_TYPE_VIEW) for name in names]

    def get_view_definition(self, handle: Any, database: str, view: str) -> str:
        return self.fetch_scalar(
            handle, "SELECT sql FROM sqlite_master WHERE type = 'view' AND name = ?", [view]
        ) or ""

    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        return self.fetch_scalar(
            handle, "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", [table]
        ) or ""

    # ----- DDL -----

    def format_default(self, value: str) -> str:
        if value.upper() in PASSTHROUGH_DEFAULTS:
            return value.upper()
        # Catalog defaults are already SQL
        if is_default_expression(value):
            return value.strip()
        return self.quote_string(value)

    def build_column_type(self, column: ColumnDef) -> str:
        parts = [declared_type(column.type, column.length, column.precision, column.scale)]

        if not column.nullable:
            parts.append("NOT NULL")

        if column.default_value is not None:
            parts.append(f"DEFAULT {self.format_default(column.default_value)}")

        if column.auto_increment:
            parts.append("PRIMARY KEY AUTOINCREMENT")

        return " ".join(parts)

    def build_action_sql(self, request: AlterTableRequest, action: AlterTableAction) -> List[str]:
        q = self.quote_identifier
        ref = q(request.table)

        if isinstance(action, AddColumn):
            return [f"ALTER TABLE {ref} ADD COLUMN {q(action.column.name)} {self.build_column_type(action.column)}"]
        if isinstance(action, RenameColumn):
            return [f"ALTER TABLE {ref} RENAME COLUMN {q(action.old_name)} TO {q(action.new_name)}"]
        if isinstance(action, AddIndex):
            index = action.index
            unique = "UNIQUE " if index.unique else ""
            columns = ", ".join(q(c) for c in index.columns)
            return [f"CREATE {unique}INDEX {q(index.name)} ON {ref} ({columns})"]
        if isinstance(action, DropIndex):
            return [f"DROP INDEX {q(action.name)}"]
        raise TypeError(f"unknown alter action: {action!r}")

    def build_create_table_sql(
        self, table: str, columns: Sequence[ColumnDef], primary_key: Sequence[str] = ()
    ) -> str:
        definitions = [f"{self.quote_identifier(c.name)} {self.build_column_type(c)}" for c in columns]
        if primary_key and not any(c.auto_increment for c in columns):
            keys = ", ".join(self.quote_identifier(k) for k in primary_key)
            definitions.append(f"PRIMARY KEY ({keys})")
        return f"CREATE TABLE {self.quote_identifier(table)} ({', '.join(definitions)})"

    def rebuild_table(
        self,
        handle: Any,
        table: str,
        columns: Sequence[ColumnDef],
        primary_key: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """
        Recreate ``table`` with ``columns`` inside one transaction.

        Data is copied for every column that exists in both the old and the
        new definition, so this covers dropping, retyping and reordering
        columns. Indexes on the old table are not recreated.

        Returns the executed statements.

        Raises:
            ValidationError: If ``columns`` is empty
            QueryError: If any step fails (nothing is changed)
        """
        if not columns:
            raise ValidationError("rebuild requires at least one column", engine=self.engine_name)

        current = self.get_table_schema(handle, "main", table)
        if primary_key is None:
            primary_key = current.primary_key
        existing = {c.name for c in current.columns}
        shared = [self.quote_identifier(c.name) for c in columns if c.name in existing]

        temp_table = f"{table}_new"
        statements = [self.build_create_table_sql(temp_table, columns, primary_key)]
        if shared:
            column_list = ", ".join(shared)
            statements.append(
                f"INSERT INTO {self.quote_identifier(temp_table)} ({column_list}) "
                f"SELECT {column_list} FROM {self.quote_identifier(table)}"
            )
        statements.append(f"DROP TABLE {self.quote_identifier(table)}")
        statements.append(f"ALTER TABLE {self.quote_identifier(temp_table)} RENAME TO {self.quote_identifier(table)}")

        cursor = handle.cursor()
        try:
            if handle.in_transaction:
                handle.commit()
            cursor.execute("BEGIN")
            for sql in statements:
                logger.info(f"[{self.engine_name}] rebuild {table}: {sql}")
                cursor.execute(sql)
            handle.commit()
        except sqlite3.Error as e:
            self._rollback(handle)
            raise QueryError(
                f"rebuild of {table} failed: {e}",
                engine=self.engine_name,
                original_error=e,
                details={"table": table},
            )
        finally:
            cursor.close()

        return statements
