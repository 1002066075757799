"""
Tests for the CSV and SQL exporters.
"""

import io
from datetime import datetime

import pytest

from dbadmin.adapters.sqlite_adapter import SQLiteAdapter
from dbadmin.export.csv_exporter import CSVExporter, wants_bom
from dbadmin.export.sql_exporter import SQLExporter
from dbadmin.models import Cell, CSVOptions, QueryResult, SQLOptions


@pytest.fixture
def result():
    """Return a small result covering every cell kind used in exports."""
    return QueryResult(
        columns=["id", "name", "active", "score", "created", "note"],
        rows=[
            {
                "id": Cell.integer(1),
                "name": Cell.text("O'Brien"),
                "active": Cell.boolean(True),
                "score": Cell.floating(1.5),
                "created": Cell.timestamp(datetime(2024, 1, 2, 3, 4, 5)),
                "note": Cell.null(),
            },
            {
                "id": Cell.integer(2),
                "name": Cell.text("a;b"),
                "active": Cell.boolean(False),
                "score": Cell.floating(2.0),
                "created": Cell.timestamp(datetime(2024, 2, 3, 4, 5, 6)),
                "note": Cell.text("x"),
            },
        ],
    )


class NoDDLAdapter(SQLiteAdapter):
    """SQLite adapter that cannot produce native DDL."""

    def get_create_table_sql(self, handle, database, table):
        return ""


class TestCSVExporter:
    """Tests for CSV output."""

    @pytest.mark.parametrize("encoding,expected", [("UTF-8", True), ("utf_8", True), ("GBK", False)])
    def test_wants_bom(self, encoding, expected):
        """Test BOM detection by encoding name."""
        assert wants_bom(encoding) is expected

    def test_default_output(self, result):
        """Test header, null rendering, and quoting."""
        buf = io.StringIO()
        written = CSVExporter(CSVOptions()).write(buf, result)

        assert written == 2
        assert buf.getvalue() == (
            "\ufeffid,name,active,score,created,note\n"
            "1,O'Brien,1,1.5,2024-01-02 03:04:05,NULL\n"
            "2,a;b,0,2.0,2024-02-03 04:05:06,x\n"
        )

    def test_separator_and_options(self, result):
        """Test custom separator, no header, null text and row cap."""
        buf = io.StringIO()
        options = CSVOptions(
            separator=";",
            include_header=False,
            encoding="GBK",
            null_value="",
            date_format="%Y-%m-%d",
            max_rows=1,
        )
        written = CSVExporter(options).write(buf, result)

        assert written == 1
        assert buf.getvalue() == "1;O'Brien;1;1.5;2024-01-02;\n"

    def test_separator_in_value_is_quoted(self, result):
        """Test that values containing the separator are quoted."""
        buf = io.StringIO()
        CSVExporter(CSVOptions(separator=";", include_header=False, encoding="latin-1")).write(buf, result)
        assert '"a;b"' in buf.getvalue()


class TestSQLExporter:
    """Tests for SQL script output."""

    def test_format_value(self, result, sqlite_adapter):
        """Test SQL literals per cell kind."""
        exporter = SQLExporter(sqlite_adapter, SQLOptions())
        row = result.rows[0]

        assert exporter.format_value(row["id"]) == "1"
        assert exporter.format_value(row["name"]) == "'O''Brien'"
        assert exporter.format_value(row["active"]) == "1"
        assert exporter.format_value(row["score"]) == "1.5"
        assert exporter.format_value(row["created"]) == "'2024-01-02 03:04:05'"
        assert exporter.format_value(row["note"]) == "NULL"
        assert exporter.format_value(None) == "NULL"

    def test_batched_inserts(self, sqlite_adapter, sqlite_conn):
        """Test multi-row INSERT batches."""
        sqlite_adapter.insert(sqlite_conn, "main", "users", {"name": "carol", "age": 41})
        buf = io.StringIO()
        options = SQLOptions(include_create_table=False, batch_insert=True, batch_size=2)
        SQLExporter(sqlite_adapter, options).export(sqlite_conn, buf, "main", ["users"])

        assert buf.getvalue() == (
            "INSERT INTO `users` (`id`, `name`, `age`) VALUES\n"
            "(1, 'alice', 30),\n"
            "(2, 'bob', 25);\n"
            "INSERT INTO `users` (`id`, `name`, `age`) VALUES\n"
            "(3, 'carol', 41);\n"
            "\n"
        )

    def test_create_table_fallback(self, sqlite_conn):
        """Test that the CREATE statement is rebuilt from the catalog."""
        buf = io.StringIO()
        SQLExporter(NoDDLAdapter(), SQLOptions(structure_only=True)).export(sqlite_conn, buf, "main", ["users"])

        assert buf.getvalue() == (
            "CREATE TABLE `users` (\n"
            "  `id` INTEGER NOT NULL,\n"
            "  `name` TEXT NOT NULL,\n"
            "  `age` INTEGER DEFAULT 0,\n"
            "  PRIMARY KEY (`id`)\n"
            ");\n\n"
        )

    def test_query_export(self, sqlite_adapter, sqlite_conn):
        """Test exporting one query result under a default table name."""
        buf = io.StringIO()
        options = SQLOptions(query="SELECT name FROM users ORDER BY id")
        SQLExporter(sqlite_adapter, options).export(sqlite_conn, buf, "main", [])

        assert buf.getvalue() == (
            "INSERT INTO `query_result` (`name`) VALUES ('alice');\n"
            "INSERT INTO `query_result` (`name`) VALUES ('bob');\n"
            "\n"
        )

    def test_zero_batch_size_uses_settings(self, sqlite_adapter, monkeypatch):
        """Test the configured batch size fallback."""
        monkeypatch.setenv("DBADMIN_EXPORT_BATCH_SIZE", "50")
        exporter = SQLExporter(sqlite_adapter, SQLOptions(batch_size=0))
        assert exporter.options.batch_size == 50
