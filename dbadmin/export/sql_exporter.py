"""
SQL Exporter

Dumps tables (or one query result) as a SQL script in the source engine's
dialect: identifiers go through the adapter's quoting, and the CREATE
statement is the engine's own DDL when it can produce one.
"""

import logging
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, TextIO

from dbadmin.core.config import get_settings
from dbadmin.errors import UnsupportedOperationError
from dbadmin.models import Cell, CellKind, QueryOptions, QueryResult, SQLOptions, TableSchema

if TYPE_CHECKING:
    from dbadmin.adapters.base import DatabaseAdapter

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TABLE = "query_result"


class SQLExporter:
    """
    Usage:
        exporter = SQLExporter(adapter, SQLOptions(batch_insert=True))
        exporter.export(handle, stream, "shop", ["orders", "customers"])
    """

    def __init__(self, adapter: "DatabaseAdapter", options: Optional[SQLOptions] = None):
        if options is None:
            options = SQLOptions(batch_size=get_settings().export_batch_size)
        if options.batch_size <= 0:
            options.batch_size = get_settings().export_batch_size
        self.adapter = adapter
        self.options = options

    def export(self, handle: Any, writer: TextIO, database: str, tables: Sequence[str]) -> None:
        opts = self.options

        if opts.query:
            result = self.adapter.query(handle, opts.query, QueryOptions(database=database))
            self.write_data(writer, "", opts.table_name or DEFAULT_QUERY_TABLE, result)
            return

        for table in tables:
            if opts.include_drop_table:
                writer.write(f"DROP TABLE IF EXISTS {self.adapter.table_ref(database, table)};\n\n")

            if opts.include_create_table or opts.structure_only:
                writer.write(self.create_statement(handle, database, table))

            if not opts.structure_only:
                sql = self.adapter.select_all_sql(database, table, opts.max_rows)
                result = self.adapter.query(handle, sql, QueryOptions(database=database))
                self.write_data(writer, database, table, result)

            logger.info(f"[{self.adapter.engine_name}] exported {database}.{table}")

    # ----- structure -----

    def create_statement(self, handle: Any, database: str, table: str) -> str:
        """Engine DDL, or one rebuilt from the catalog when the engine has none."""
        try:
            ddl = (self.adapter.get_create_table_sql(handle, database, table) or "").strip()
        except UnsupportedOperationError:
            ddl = ""

        if not ddl:
            schema = self.adapter.get_table_schema(handle, database, table)
            ddl = self.build_create_table(database, schema)

        return ddl.rstrip(";") + ";\n\n"

    def build_create_table(self, database: str, schema: TableSchema) -> str:
        q = self.adapter.quote_identifier
        lines = []
        for col in schema.columns:
            line = f"  {q(col.name)} {col.type}"
            if not col.nullable:
                line += " NOT NULL"
            if col.default_value is not None and col.default_value != "":
                line += f" DEFAULT {col.default_value}"
            if col.extra:
                line += f" {col.extra}"
            lines.append(line)

        if schema.primary_key:
            lines.append(f"  PRIMARY KEY ({', '.join(q(c) for c in schema.primary_key)})")

        body = ",\n".join(lines)
        return f"CREATE TABLE {self.adapter.table_ref(database, schema.table)} (\n{body}\n)"

    # ----- data -----

    def write_data(self, writer: TextIO, database: str, table: str, result: QueryResult) -> int:
        if self.options.structure_only or not result.columns:
            return 0

        rows = result.rows
        if self.options.max_rows > 0:
            rows = rows[:self.options.max_rows]

        target = self.adapter.table_ref(database, table)
        columns = ", ".join(self.adapter.quote_identifier(c) for c in result.columns)

        if self.options.batch_insert and self.options.batch_size > 1:
            size = self.options.batch_size
            for start in range(0, len(rows), size):
                values = ",\n".join(
                    f"({self.format_row(result.columns, row)})" for row in rows[start:start + size]
                )
                writer.write(f"INSERT INTO {target} ({columns}) VALUES\n{values};\n")
        else:
            for row in rows:
                writer.write(f"INSERT INTO {target} ({columns}) VALUES ({self.format_row(result.columns, row)});\n")

        writer.write("\n")
        return len(rows)

    def format_row(self, columns: List[str], row: dict) -> str:
        return ", ".join(self.format_value(row.get(name)) for name in columns)

    def format_value(self, cell: Optional[Cell]) -> str:
        """SQL literal for one cell."""
        if cell is None or cell.kind is CellKind.NULL:
            return "NULL"
        if cell.kind is CellKind.BOOLEAN:
            return "1" if cell.value else "0"
        if cell.kind in (CellKind.INTEGER, CellKind.FLOATING):
            return cell.display()
        return self.adapter.quote_string(cell.display())
