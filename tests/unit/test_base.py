"""
Tests for statement classification, value decoding and index grouping.
"""

import logging
from datetime import date
from decimal import Decimal

from dbadmin.adapters.base import (
    StatementKind,
    as_schema_aware,
    classify_statement,
    declared_type,
    decode_value,
    group_index_rows,
    is_default_expression,
    leading_keyword,
    list_schemas,
)
from dbadmin.adapters.kingbase_adapter import KingBaseAdapter
from dbadmin.adapters.mysql_adapter import MySQLAdapter
from dbadmin.adapters.postgres_adapter import PostgresAdapter
from dbadmin.models import CellKind

KEYWORDS = ("SELECT", "SHOW", "WITH", "EXPLAIN")


def test_leading_keyword_skips_comments():
    """Test that comments and parentheses are skipped."""
    assert leading_keyword("  -- note\n/* block */ (select 1)") == "SELECT"
    assert leading_keyword("") == ""


def test_classify_query_and_mutation():
    """Test basic classification."""
    assert classify_statement("SELECT * FROM t", KEYWORDS) is StatementKind.QUERY
    assert classify_statement("show tables", KEYWORDS) is StatementKind.QUERY
    assert classify_statement("UPDATE t SET a = 1", KEYWORDS) is StatementKind.MUTATION
    assert classify_statement("CREATE TABLE t (a int)", KEYWORDS) is StatementKind.MUTATION


def test_classify_data_modifying_cte_is_ambiguous():
    """Test that a WITH statement that writes is flagged."""
    sql = "WITH moved AS (DELETE FROM a RETURNING *) INSERT INTO b SELECT * FROM moved"
    assert classify_statement(sql, KEYWORDS) is StatementKind.AMBIGUOUS


def test_classify_ignores_keywords_inside_literals():
    """Test that string literals do not make a CTE ambiguous."""
    sql = "WITH x AS (SELECT 'DELETE me' AS note) SELECT * FROM x"
    assert classify_statement(sql, KEYWORDS) is StatementKind.QUERY


def test_decode_value_kinds():
    """Test the default driver decoder."""
    assert decode_value(None).kind is CellKind.NULL
    assert decode_value(True).kind is CellKind.BOOLEAN
    assert decode_value(7).kind is CellKind.INTEGER
    assert decode_value(2.5).kind is CellKind.FLOATING
    assert decode_value(b"bytes").value == "bytes"
    assert decode_value(date(2024, 5, 1)).kind is CellKind.TIMESTAMP


def test_decode_decimal_keeps_precision():
    """Test that decimals stay exact text."""
    cell = decode_value(Decimal("12345678901234567890.123456789"))
    assert cell.kind is CellKind.TEXT
    assert cell.value == "12345678901234567890.123456789"


def test_decode_containers_are_structured():
    """Test that containers become canonical JSON."""
    cell = decode_value({"b": 1, "a": [1, 2]})
    assert cell.kind is CellKind.STRUCTURED
    assert cell.value == '{"a": [1, 2], "b": 1}'


def test_group_index_rows_preserves_order():
    """Test index grouping keeps first-seen and column order."""
    rows = [
        ("PRIMARY", "id", True, True, "BTREE"),
        ("idx_name", "last", False, False, "BTREE"),
        ("idx_name", "first", False, False, "BTREE"),
    ]
    indexes = group_index_rows(rows)
    assert [i.name for i in indexes] == ["PRIMARY", "idx_name"]
    assert indexes[1].columns == ["last", "first"]
    assert indexes[0].primary and indexes[0].unique


def test_declared_type_keeps_argument_lists():
    """Test that only the base name is uppercased."""
    assert declared_type("enum('active','closed')") == "ENUM('active','closed')"
    assert declared_type("set('a','B')", length=10) == "SET('a','B')"
    assert declared_type("varchar", length=64) == "VARCHAR(64)"
    assert declared_type("decimal", precision=10, scale=2) == "DECIMAL(10,2)"
    assert declared_type(" text ") == "TEXT"


def test_is_default_expression():
    """Test which catalog defaults are already SQL."""
    for text in ["0", "-1.5", "'x'", "'it''s'", "'x'::character varying", "now()", "(1 + 2)", "0::numeric"]:
        assert is_default_expression(text), text
    for text in ["active", "n/a", "hello world", ""]:
        assert not is_default_expression(text), text


def test_group_index_rows_drops_empty_indexes(caplog):
    """Test that an index with no resolvable column is skipped with a warning."""
    rows = [("idx_expr", None, False, False, "btree"), ("idx_a", "a", False, False, "btree")]
    with caplog.at_level(logging.WARNING):
        indexes = group_index_rows(rows, engine="postgresql", table="public.t")
    assert [i.name for i in indexes] == ["idx_a"]
    assert "idx_expr" in caplog.text


def test_schema_aware_probing():
    """Test capability probing."""
    assert as_schema_aware(PostgresAdapter()) is not None
    assert as_schema_aware(KingBaseAdapter()) is not None
    assert as_schema_aware(MySQLAdapter()) is None


def test_list_schemas_without_capability():
    """Test that engines without schemas report none."""
    assert list_schemas(MySQLAdapter(), object(), "shop") == []


def test_list_schemas_with_capability(fake_connection):
    """Test listing schemas through the capability."""
    fake_connection.results = [(["schema_name"], [("public",), ("sales",)])]
    assert list_schemas(PostgresAdapter(), fake_connection, "analytics") == ["public", "sales"]
