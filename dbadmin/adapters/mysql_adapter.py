"""
MySQL Adapter

Metadata comes from INFORMATION_SCHEMA; object sources come from the
SHOW CREATE family. ALTER TABLE requests are sent as one combined
statement, so MySQL applies them all or none.
"""

import logging
from typing import Any, Dict, List

try:
    import mysql.connector
    MYSQL_AVAILABLE = True
except ImportError:
    MYSQL_AVAILABLE = False
    mysql = None

from dbadmin.adapters import ddl
from dbadmin.adapters.base import declared_type, group_index_rows
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
    IndexDef,
    ModifyColumn,
    RenameColumn,
    RoutineInfo,
    ROUTINE_FUNCTION,
    ROUTINE_PROCEDURE,
    TableInfo,
    TableSchema,
    TABLE_TYPE_VIEW,
)

logger = logging.getLogger(__name__)

SYSTEM_DATABASES = ("mysql", "information_schema", "performance_schema", "sys")


class MySQLAdapter(DBAPIAdapter):
    """
    Adapter for MySQL (and wire-compatible servers).

    Descriptor:
        host: Server host
        port: Server port (default: 3306)
        username / password: Credentials
        database: Default schema (optional)
        params: Passed through to mysql.connector.connect()
                (e.g. charset, ssl_ca, connection_timeout)

    Example:
        adapter = MySQLAdapter()
        conn = adapter.connect(ConnectionDescriptor(
            engine=EngineKind.MYSQL, host="localhost",
            username="root", password="secret", database="shop",
        ))
        result = adapter.query(conn, "SELECT * FROM orders LIMIT 10")
    """

    ENGINE = EngineKind.MYSQL
    PLACEHOLDER = "%s"
    IDENTIFIER_QUOTE = "`"
    QUERY_KEYWORDS = ("SELECT", "SHOW", "DESC", "DESCRIBE", "EXPLAIN", "WITH", "PRAGMA")
    RENAME_REQUIRES_DEFINITION = True

    DEFAULT_PORT = 3306

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        if not MYSQL_AVAILABLE:
            raise driver_missing(self.engine_name, "mysql-connector-python")

        kwargs: Dict[str, Any] = {
            "host": descriptor.host or "localhost",
            "port": descriptor.port or self.DEFAULT_PORT,
            "user": descriptor.username,
            "password": descriptor.password,
            "connection_timeout": get_settings().connect_timeout,
        }
        if descriptor.database:
            kwargs["database"] = descriptor.database
        kwargs.update(descriptor.params)

        logger.info(
            f"Connecting to MySQL: {descriptor.username}@{kwargs['host']}:{kwargs['port']}/{descriptor.database}"
        )
        try:
            return mysql.connector.connect(**kwargs)
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to MySQL: {e}",
                engine=self.engine_name,
                original_error=e,
            )

    def use_database(self, cursor: Any, database: str) -> None:
        cursor.execute(f"USE {self.quote_identifier(database)}")

    # ----- metadata -----

    def get_databases(self, handle: Any) -> List[str]:
        placeholders = ", ".join("?" for _ in SYSTEM_DATABASES)
        return self.fetch_values(
            handle,
            f"""
            SELECT SCHEMA_NAME
            FROM INFORMATION_SCHEMA.SCHEMATA
            WHERE SCHEMA_NAME NOT IN ({placeholders})
            ORDER BY SCHEMA_NAME
            """,
            SYSTEM_DATABASES,
        )

    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        _, rows = self.fetch_all(
            handle,
            """
            SELECT TABLE_NAME, TABLE_TYPE, TABLE_ROWS, DATA_LENGTH, TABLE_COMMENT
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = ? AND TABLE_TYPE IN ('BASE TABLE', 'VIEW')
            ORDER BY TABLE_NAME
            """,
            [database],
        )
        return [
            TableInfo(
                name=name,
                database=database,
                table_type=table_type or "",
                rows=int(table_rows or 0),
                size=int(data_length or 0),
                comment=comment or "",
            )
            for name, table_type, table_rows, data_length, comment in rows
        ]

    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        _, col_rows = self.fetch_all(
            handle,
            """
            SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, COLUMN_DEFAULT,
                   COLUMN_KEY, EXTRA, COLUMN_COMMENT
            FROM INFORMATION_SCHEMA.COLUMNS
            WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ?
            ORDER BY ORDINAL_POSITION
            """,
            [database, table],
        )
        columns = [
            ColumnInfo(
                name=name,
                type=_text(col_type),
                nullable=nullable == "YES",
                default_value=None if default is None else _text(default),
                key=key or "",
                extra=extra or "",
                comment=comment or "",
            )
            for name, col_type, nullable, default, key, extra, comment in col_rows
        ]

        _, idx_rows = self.fetch_all(
            handle,
            """
            SELECT INDEX_NAME, COLUMN_NAME, NON_UNIQUE, INDEX_TYPE
            FROM INFORMATION_SCHEMA.STATISTICS
            WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ?
            ORDER BY INDEX_NAME, SEQ_IN_INDEX
            """,
            [database, table],
        )
        indexes = group_index_rows(
            (
                (name, column, int(non_unique) == 0, name == "PRIMARY", index_type)
                for name, column, non_unique, index_type in idx_rows
            ),
            engine=self.engine_name,
            table=table,
        )

        return TableSchema(database=database, table=table, columns=columns, indexes=indexes)

    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        names = self.fetch_values(
            handle,
            """
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.VIEWS
            WHERE TABLE_SCHEMA = ?
            ORDER BY TABLE_NAME
            """,
            [database],
        )
        return [TableInfo(name=name, database=database, table_type=TABLE_TYPE_VIEW) for name in names]

    def get_procedures(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, ROUTINE_PROCEDURE)

    def get_functions(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, ROUTINE_FUNCTION)

    def _routines(self, handle: Any, database: str, routine_type: str) -> List[RoutineInfo]:
        _, rows = self.fetch_all(
            handle,
            """
            SELECT ROUTINE_NAME, ROUTINE_COMMENT
            FROM INFORMATION_SCHEMA.ROUTINES
            WHERE ROUTINE_SCHEMA = ? AND ROUTINE_TYPE = ?
            ORDER BY ROUTINE_NAME
            """,
            [database, routine_type],
        )
        return [
            RoutineInfo(name=name, routine_type=routine_type, database=database, comment=comment or "")
            for name, comment in rows
        ]

    def get_view_definition(self, handle: Any, database: str, view: str) -> str:
        # Columns: View, Create View, character_set_client, collation_connection
        return self._show_create(handle, f"SHOW CREATE VIEW {self.table_ref(database, view)}", 1)

    def get_routine_definition(self, handle: Any, database: str, name: str, routine_type: str) -> str:
        kind = "FUNCTION" if routine_type.upper() == ROUTINE_FUNCTION else "PROCEDURE"
        # Columns: Procedure/Function, sql_mode, Create Procedure/Function, ...
        return self._show_create(handle, f"SHOW CREATE {kind} {self.table_ref(database, name)}", 2)

    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        return self._show_create(handle, f"SHOW CREATE TABLE {self.table_ref(database, table)}", 1)

    def _show_create(self, handle: Any, sql: str, position: int) -> str:
        _, rows = self.fetch_all(handle, sql)
        if not rows:
            return ""
        return _text(rows[0][position])

    # ----- DDL -----

    def build_column_type(self, column: ColumnDef) -> str:
        parts = [declared_type(column.type, column.length, column.precision, column.scale)]

        parts.append("NOT NULL" if not column.nullable else "NULL")

        if column.default_value is not None:
            default = column.default_value
            if default.upper() == "NULL":
                parts.append("DEFAULT NULL")
            elif default.upper() == "CURRENT_TIMESTAMP":
                parts.append("DEFAULT CURRENT_TIMESTAMP")
            else:
                parts.append(f"DEFAULT {self.quote_string(default)}")

        if column.auto_increment:
            parts.append("AUTO_INCREMENT")

        if column.comment:
            parts.append(f"COMMENT {self.quote_string(column.comment)}")

        return " ".join(parts)

    def build_alter_clause(self, action: AlterTableAction) -> str:
        """One clause of the combined ALTER TABLE statement."""
        if isinstance(action, AddColumn):
            clause = f"ADD COLUMN {self.quote_identifier(action.column.name)} {self.build_column_type(action.column)}"
            if action.column.after:
                clause += f" AFTER {self.quote_identifier(action.column.after)}"
            return clause
        if isinstance(action, DropColumn):
            return f"DROP COLUMN {self.quote_identifier(action.name)}"
        if isinstance(action, ModifyColumn):
            return f"MODIFY COLUMN {self.quote_identifier(action.column.name)} {self.build_column_type(action.column)}"
        if isinstance(action, RenameColumn):
            return (
                f"CHANGE COLUMN {self.quote_identifier(action.old_name)} "
                f"{self.quote_identifier(action.new_name)} {self.build_column_type(action.column)}"
            )
        if isinstance(action, AddIndex):
            return self._add_index_clause(action.index)
        if isinstance(action, DropIndex):
            return f"DROP INDEX {self.quote_identifier(action.name)}"
        raise TypeError(f"unknown alter action: {action!r}")

    def _add_index_clause(self, index: IndexDef) -> str:
        kind = "UNIQUE INDEX" if index.unique else "INDEX"
        columns = ", ".join(self.quote_identifier(c) for c in index.columns)
        clause = f"ADD {kind} {self.quote_identifier(index.name)} ({columns})"
        if index.index_type:
            clause += f" USING {index.index_type.upper()}"
        if index.comment:
            clause += f" COMMENT {self.quote_string(index.comment)}"
        return clause

    def plan_alter(self, request: AlterTableRequest) -> ddl.AlterPlan:
        clauses = ", ".join(self.build_alter_clause(action) for action in request.actions)
        plan = ddl.AlterPlan(combined=True)
        plan.statements.append(
            ddl.PlannedStatement(sql=f"ALTER TABLE {self.table_ref(request.database, request.table)} {clauses}")
        )
        return plan

    def rename_table(self, handle: Any, database: str, old_name: str, new_name: str) -> None:
        self.run(handle, f"RENAME TABLE {self.table_ref(database, old_name)} TO {self.table_ref(database, new_name)}")


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return "" if value is None else str(value)
