"""
DB-API Adapter Base

Cursor handling shared by every engine reached through a PEP 249 driver
(MySQL, PostgreSQL, KingBase, SQLite, Oracle, DM). Subclasses provide the
dialect: placeholders, identifier quoting, catalog queries and the
per-action ALTER translation.

Catalog SQL is written with ``?`` placeholders and converted to the
driver's paramstyle by ``convert_placeholders``.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, TextIO, Tuple

from dbadmin.adapters import ddl
from dbadmin.adapters.base import DatabaseAdapter, StatementKind
from dbadmin.errors import ConnectionError, DbAdminError, QueryError
from dbadmin.models import (
    AlterResult,
    AlterTableAction,
    AlterTableRequest,
    CSVOptions,
    ExecuteResult,
    QueryOptions,
    QueryResult,
    SQLOptions,
)

logger = logging.getLogger(__name__)


class DBAPIAdapter(DatabaseAdapter):
    """
    Base class for adapters backed by a DB-API 2.0 connection.

    Every write goes through ``run()``, which commits on success and rolls
    back on failure. Reads go through ``fetch_all()``.
    """

    # Driver paramstyle marker
    PLACEHOLDER = "%s"

    # Liveness probe
    PING_SQL = "SELECT 1"

    # ----- placeholders -----

    def placeholder(self, position: int) -> str:
        """Placeholder for the zero-based ``position``-th parameter."""
        return self.PLACEHOLDER

    def convert_placeholders(self, sql: str) -> str:
        """Convert ? placeholders to the driver's format."""
        if self.PLACEHOLDER == "?":
            return sql

        parts = sql.split("?")
        converted = [parts[0]]
        for position, part in enumerate(parts[1:]):
            converted.append(self.placeholder(position))
            converted.append(part)
        return "".join(converted)

    # ----- cursor helpers -----

    def rewrite_query(self, sql: str) -> str:
        """Dialect rewrite applied to caller SQL before execution."""
        return sql

    def use_database(self, cursor: Any, database: str) -> None:
        """Switch the handle's current catalog (engines that support it)."""

    def _rollback(self, handle: Any) -> None:
        try:
            handle.rollback()
        except Exception as e:
            logger.warning(f"[{self.engine_name}] rollback failed: {e}")

    def _cursor(self, handle: Any) -> Any:
        try:
            return handle.cursor()
        except Exception as e:
            raise self.wrap_error(f"{self.engine_name} connection unusable", e, kind=ConnectionError)

    def fetch_all(self, handle: Any, sql: str, params: Sequence[Any] = ()) -> Tuple[List[str], List[tuple]]:
        """
        Run a read statement and return (column names, raw rows).

        ``sql`` uses ? placeholders.
        """
        cursor = self._cursor(handle)
        try:
            cursor.execute(self.convert_placeholders(sql), list(params))
            columns = [desc[0] for desc in cursor.description] if cursor.description else []
            rows = [tuple(row) for row in cursor.fetchall()] if cursor.description else []
            return columns, rows
        except Exception as e:
            self._rollback(handle)
            raise self.wrap_error(f"{self.engine_name} catalog query failed", e)
        finally:
            cursor.close()

    def fetch_values(self, handle: Any, sql: str, params: Sequence[Any] = ()) -> List[Any]:
        """First column of every row."""
        _, rows = self.fetch_all(handle, sql, params)
        return [row[0] for row in rows]

    def fetch_scalar(self, handle: Any, sql: str, params: Sequence[Any] = ()) -> Any:
        _, rows = self.fetch_all(handle, sql, params)
        return rows[0][0] if rows else None

    def run(self, handle: Any, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute one write statement, commit, and return the affected row count."""
        cursor = self._cursor(handle)
        try:
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            affected = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
            handle.commit()
            return affected
        except Exception as e:
            self._rollback(handle)
            raise self.wrap_error(f"{self.engine_name} statement failed", e)
        finally:
            cursor.close()

    # ----- lifecycle -----

    def ping(self, handle: Any) -> None:
        try:
            self.fetch_all(handle, self.PING_SQL)
        except DbAdminError as e:
            raise ConnectionError(
                f"{self.engine_name} ping failed: {e.message}",
                engine=self.engine_name,
                original_error=e.original_error,
            )

    def close(self, handle: Any) -> None:
        try:
            handle.close()
        except Exception as e:
            raise self.wrap_error(f"{self.engine_name} close failed", e, kind=ConnectionError)

    # ----- mutation -----

    def insert(self, handle: Any, database: str, table: str, data: Dict[str, Any]) -> int:
        data = self.require_data(data, "INSERT")
        columns = ", ".join(self.quote_identifier(c) for c in data)
        values = ", ".join(self.placeholder(i) for i in range(len(data)))
        sql = f"INSERT INTO {self.table_ref(database, table)} ({columns}) VALUES ({values})"
        return self.run(handle, sql, list(data.values()))

    def update(self, handle: Any, database: str, table: str, data: Dict[str, Any], where: str) -> int:
        where = self.require_where(where, "UPDATE")
        data = self.require_data(data, "UPDATE")
        assignments = ", ".join(
            f"{self.quote_identifier(c)} = {self.placeholder(i)}" for i, c in enumerate(data)
        )
        sql = f"UPDATE {self.table_ref(database, table)} SET {assignments} WHERE {where}"
        return self.run(handle, sql, list(data.values()))

    def delete(self, handle: Any, database: str, table: str, where: str) -> int:
        where = self.require_where(where, "DELETE")
        sql = f"DELETE FROM {self.table_ref(database, table)} WHERE {where}"
        return self.run(handle, sql)

    # ----- free-form -----

    def execute(self, handle: Any, sql: str, *args: Any) -> ExecuteResult:
        """
        Execute a write statement. Positional ``args`` bind to ? placeholders.
        """
        start_time = time.perf_counter()
        statement = self.convert_placeholders(sql) if args else sql
        affected = self.run(handle, statement, args)
        return ExecuteResult(
            rows_affected=affected,
            time_cost_ms=(time.perf_counter() - start_time) * 1000,
        )

    def query(self, handle: Any, sql: str, options: Optional[QueryOptions] = None) -> QueryResult:
        """
        Run caller SQL.

        Row-producing statements return decoded rows; anything else is
        executed and reported through ``rows_affected``.
        """
        options = options or QueryOptions()
        kind = self.classify(sql)
        if kind is StatementKind.MUTATION:
            result = self.execute(handle, sql)
            return QueryResult(
                rows_affected=result.rows_affected,
                message=f"{result.rows_affected} row(s) affected",
                time_cost_ms=result.time_cost_ms,
            )

        if kind is StatementKind.AMBIGUOUS:
            logger.warning(f"[{self.engine_name}] statement may modify data: {sql[:200]}")

        statement = self.rewrite_query(sql)
        start_time = time.perf_counter()
        cursor = self._cursor(handle)
        try:
            if options.database:
                self.use_database(cursor, options.database)
            cursor.execute(statement)

            if cursor.description is None:
                affected = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
                handle.commit()
                return QueryResult(
                    rows_affected=affected,
                    message=f"{affected} row(s) affected",
                    time_cost_ms=(time.perf_counter() - start_time) * 1000,
                )

            columns = [desc[0] for desc in cursor.description]
            data = cursor.fetchall()
            if kind is StatementKind.AMBIGUOUS:
                handle.commit()
        except Exception as e:
            self._rollback(handle)
            raise QueryError(
                f"{self.engine_name} query failed: {e}",
                engine=self.engine_name,
                original_error=e,
                details={"sql": statement[:500]},
            )
        finally:
            cursor.close()

        rows = [self.decode_row(columns, row) for row in data]
        return QueryResult(
            columns=columns,
            rows=rows,
            total=len(rows),
            time_cost_ms=(time.perf_counter() - start_time) * 1000,
        )

    # ----- structural -----

    def alter_table(self, handle: Any, request: AlterTableRequest) -> AlterResult:
        ddl.validate_request(self, request)
        plan = self.plan_alter(request)
        return ddl.execute_plan(self, request, plan, lambda sql: self.run(handle, sql))

    def plan_alter(self, request: AlterTableRequest) -> ddl.AlterPlan:
        """One or more statements per action, in request order."""
        plan = ddl.AlterPlan()
        for index, action in enumerate(request.actions):
            for sql in self.build_action_sql(request, action):
                plan.add(sql, index, action.action_type)
        return plan

    def build_action_sql(self, request: AlterTableRequest, action: AlterTableAction) -> List[str]:
        """Statements implementing one validated action. Per-action engines override."""
        raise NotImplementedError

    def rename_table(self, handle: Any, database: str, old_name: str, new_name: str) -> None:
        self.run(handle, f"ALTER TABLE {self.table_ref(database, old_name)} RENAME TO {self.quote_identifier(new_name)}")

    # ----- export -----

    def export_to_csv(
        self, handle: Any, writer: TextIO, database: str, query: str, options: Optional[CSVOptions] = None
    ) -> None:
        from dbadmin.export.csv_exporter import CSVExporter

        result = self.query(handle, query, QueryOptions(database=database))
        CSVExporter(options).write(writer, result)

    def export_to_sql(
        self, handle: Any, writer: TextIO, database: str, tables: Sequence[str], options: Optional[SQLOptions] = None
    ) -> None:
        from dbadmin.export.sql_exporter import SQLExporter

        SQLExporter(self, options).export(handle, writer, database, tables)
