"""
Tests for the ClickHouse adapter using a recording client.
"""

from datetime import datetime

import pytest

from dbadmin.adapters import clickhouse_adapter
from dbadmin.adapters.clickhouse_adapter import ClickHouseAdapter, select_protocol
from dbadmin.errors import ConfigurationError, UnsupportedOperationError, ValidationError
from dbadmin.models import (
    AddColumn,
    AddIndex,
    AlterStatus,
    AlterTableRequest,
    CellKind,
    ColumnDef,
    ConnectionDescriptor,
    DropColumn,
    EngineKind,
    IndexDef,
)


@pytest.fixture
def adapter():
    """Return a ClickHouse adapter."""
    return ClickHouseAdapter()


def descriptor(**kwargs):
    kwargs.setdefault("host", "ch")
    return ConnectionDescriptor(engine=EngineKind.CLICKHOUSE, **kwargs)


class TestConnection:
    """Tests for protocol selection and DSNs."""

    @pytest.mark.parametrize(
        "port,params,expected",
        [
            (8123, {}, "http"),
            (8443, {}, "https"),
            (9000, {}, "clickhouse"),
            (9000, {"protocol": "http"}, "http"),
        ],
    )
    def test_select_protocol(self, port, params, expected):
        """Test port based detection and the explicit override."""
        assert select_protocol(descriptor(port=port, params=params)) == expected

    def test_build_dsn(self, adapter):
        """Test that the protocol param is consumed and settings are sorted."""
        dsn = adapter.build_dsn(
            descriptor(
                port=8123,
                username="default",
                password="pw",
                database="events",
                params={"protocol": "https", "max_threads": "4"},
            )
        )
        assert dsn == "https://default:pw@ch:8123/events?max_threads=4"

    def test_native_protocol_rejected(self, adapter, monkeypatch):
        """Test that the native protocol is a configuration error."""
        monkeypatch.setattr(clickhouse_adapter, "CLICKHOUSE_AVAILABLE", True)
        with pytest.raises(ConfigurationError) as exc_info:
            adapter.connect(descriptor(port=9000))
        assert "8123" in exc_info.value.suggestion


class TestAlterTable:
    """Tests for ALTER handling on MergeTree family tables."""

    def test_add_index_rejected_before_io(self, adapter, clickhouse_client):
        """Test that index actions fail with a hint and touch nothing."""
        request = AlterTableRequest(
            database="events",
            table="hits",
            actions=[AddIndex(index=IndexDef(name="idx_user", columns=["user_id"]))],
        )
        with pytest.raises(UnsupportedOperationError) as exc_info:
            adapter.alter_table(clickhouse_client, request)

        message = str(exc_info.value)
        assert "ORDER BY" in message
        assert "PRIMARY KEY" in message
        assert clickhouse_client.commands == []
        assert clickhouse_client.queries == []

    def test_replicated_table_is_pending(self, adapter, make_clickhouse_client, caplog):
        """Test that ALTER on a replicated table is reported as accepted."""
        client = make_clickhouse_client(query_results=[(["engine"], [("ReplicatedMergeTree",)])])
        request = AlterTableRequest(
            database="events",
            table="hits",
            actions=[AddColumn(column=ColumnDef(name="score", type="Float64"))],
        )
        result = adapter.alter_table(client, request)

        assert result.status is AlterStatus.ACCEPTED_PENDING
        assert client.commands == [("ALTER TABLE `events`.`hits` ADD COLUMN `score` Nullable(Float64)", None)]
        assert "replicas apply it asynchronously" in caplog.text

    def test_plain_merge_tree_is_applied(self, adapter, make_clickhouse_client):
        """Test synchronous ALTER on a non-replicated table."""
        client = make_clickhouse_client(query_results=[(["engine"], [("MergeTree",)])])
        request = AlterTableRequest(
            database="events",
            table="hits",
            actions=[
                DropColumn(name="legacy"),
                AddColumn(column=ColumnDef(name="country", type="String", nullable=False, default_value="xx")),
            ],
        )
        result = adapter.alter_table(client, request)

        assert result.status is AlterStatus.APPLIED
        assert client.commands[0][0] == (
            "ALTER TABLE `events`.`hits` DROP COLUMN `legacy`, ADD COLUMN `country` String DEFAULT 'xx'"
        )

    def test_rename_replicated_table_rejected(self, adapter, make_clickhouse_client):
        """Test that renaming a replicated table is refused."""
        client = make_clickhouse_client(query_results=[(["engine"], [("ReplicatedReplacingMergeTree",)])])
        with pytest.raises(UnsupportedOperationError):
            adapter.rename_table(client, "events", "hits", "visits")
        assert client.commands == []

    def test_rename_table(self, adapter, make_clickhouse_client):
        """Test RENAME TABLE on a local table."""
        client = make_clickhouse_client(query_results=[(["engine"], [("MergeTree",)])])
        adapter.rename_table(client, "events", "hits", "visits")
        assert client.commands == [("RENAME TABLE `events`.`hits` TO `events`.`visits`", None)]


class TestMutations:
    """Tests for asynchronous UPDATE/DELETE and inserts."""

    def test_update_submits_mutation(self, adapter, clickhouse_client):
        """Test the ALTER TABLE ... UPDATE shape and parameters."""
        affected = adapter.update(clickhouse_client, "events", "hits", {"status": "done", "score": 5}, "id = 7")

        assert affected == 0
        assert clickhouse_client.commands == [
            (
                "ALTER TABLE `events`.`hits` UPDATE `status` = %(v0)s, `score` = %(v1)s WHERE id = 7",
                {"v0": "done", "v1": 5},
            )
        ]

    def test_delete_without_where_is_refused(self, adapter, clickhouse_client):
        """Test that no mutation is sent without a condition."""
        with pytest.raises(ValidationError):
            adapter.delete(clickhouse_client, "events", "hits", " ")
        assert clickhouse_client.commands == []

    def test_delete_submits_mutation(self, adapter, clickhouse_client):
        """Test the ALTER TABLE ... DELETE shape."""
        assert adapter.delete(clickhouse_client, "events", "hits", "id < 10") == 0
        assert clickhouse_client.commands == [("ALTER TABLE `events`.`hits` DELETE WHERE id < 10", None)]

    def test_insert(self, adapter, clickhouse_client):
        """Test column-oriented insert through the client."""
        assert adapter.insert(clickhouse_client, "events", "hits", {"id": 1, "url": "/"}) == 1
        assert clickhouse_client.inserts == [("events", "hits", ["id", "url"], [[1, "/"]])]


class TestReads:
    """Tests for queries and catalog reads."""

    def test_query_decodes_structured_cells(self, adapter, make_clickhouse_client):
        """Test that arrays become structured JSON cells."""
        client = make_clickhouse_client(query_results=[(["id", "tags"], [(1, ["a", "b"])])])
        result = adapter.query(client, "SELECT id, tags FROM hits")

        assert result.columns == ["id", "tags"]
        cell = result.rows[0]["tags"]
        assert cell.kind is CellKind.STRUCTURED
        assert cell.value == '["a", "b"]'

    def test_table_schema_primary_index(self, adapter, make_clickhouse_client):
        """Test that primary key columns form the only index."""
        client = make_clickhouse_client(
            query_results=[
                (
                    ["name", "type", "is_in_primary_key", "default_expression", "comment"],
                    [
                        ("id", "UInt64", 1, "", ""),
                        ("ts", "DateTime", 1, "now()", "event time"),
                        ("note", "Nullable(String)", 0, "", ""),
                    ],
                )
            ]
        )
        schema = adapter.get_table_schema(client, "events", "hits")

        assert [c.nullable for c in schema.columns] == [False, False, True]
        assert schema.columns[1].default_value == "now()"
        assert len(schema.indexes) == 1
        assert schema.indexes[0].columns == ["id", "ts"]
        assert schema.indexes[0].unique is False
        assert schema.primary_key == ["id", "ts"]

    def test_described_columns_rebuild(self, adapter, make_clickhouse_client):
        """Test that catalog columns turn back into the same definitions."""
        client = make_clickhouse_client(
            query_results=[
                (
                    ["name", "type", "is_in_primary_key", "default_expression", "comment"],
                    [
                        ("id", "UInt64", 1, "", ""),
                        ("ts", "DateTime", 1, "now()", "event time"),
                        ("status", "LowCardinality(String)", 0, "'new'", ""),
                        ("note", "Nullable(String)", 0, "", ""),
                    ],
                )
            ]
        )
        schema = adapter.get_table_schema(client, "events", "hits")

        assert [adapter.build_column_type(ColumnDef.from_column_info(c)) for c in schema.columns] == [
            "UInt64",
            "DateTime DEFAULT now() COMMENT 'event time'",
            "LowCardinality(String) DEFAULT 'new'",
            "Nullable(String)",
        ]

    def test_check_mutation_status(self, adapter, make_clickhouse_client):
        """Test reading system.mutations."""
        created = datetime(2024, 5, 1, 12, 0, 0)
        client = make_clickhouse_client(
            query_results=[
                (
                    ["mutation_id", "command", "create_time", "is_done", "latest_fail_reason"],
                    [("0000000001", "UPDATE status = 'done' WHERE id = 7", created, 0, "")],
                )
            ]
        )
        statuses = adapter.check_mutation_status(client, "events", "hits")

        assert len(statuses) == 1
        assert statuses[0].mutation_id == "0000000001"
        assert statuses[0].is_done is False
        assert client.queries[0][1] == {"database": "events", "table": "hits"}
