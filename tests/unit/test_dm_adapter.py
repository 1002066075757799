"""
Tests for the DM adapter.
"""

import pytest

from dbadmin.adapters import dm_adapter
from dbadmin.adapters.dm_adapter import DMAdapter, dm_type_string
from dbadmin.errors import ConfigurationError, ErrorCode
from dbadmin.models import (
    AddColumn,
    AddIndex,
    AlterTableRequest,
    ColumnDef,
    ConnectionDescriptor,
    DropIndex,
    EngineKind,
    IndexDef,
    ModifyColumn,
)


@pytest.fixture
def adapter():
    """Return a DM adapter."""
    return DMAdapter()


def test_dsn_uses_database_as_schema(adapter):
    """Test the display DSN with URL-quoted credentials."""
    descriptor = ConnectionDescriptor(
        engine=EngineKind.DM, host="dm", port=5236, username="SYSDBA", password="p@ss", database="APP"
    )
    assert adapter.build_dsn(descriptor) == "dm://SYSDBA:p%40ss@dm:5236?schema=APP"


def test_dsn_params_sorted(adapter):
    """Test that explicit params replace the schema fallback."""
    descriptor = ConnectionDescriptor(
        engine=EngineKind.DM, host="dm", database="APP", params={"schema": "OTHER", "autoCommit": "true"}
    )
    assert adapter.build_dsn(descriptor) == "dm://dm?autoCommit=true&schema=OTHER"


def test_connect_without_driver(adapter, monkeypatch):
    """Test the driver-missing error."""
    monkeypatch.setattr(dm_adapter, "DMPYTHON_AVAILABLE", False)
    with pytest.raises(ConfigurationError) as exc_info:
        adapter.connect(ConnectionDescriptor(engine=EngineKind.DM, host="dm"))
    assert exc_info.value.code is ErrorCode.ERR_DRIVER_MISSING
    assert "dmPython" in exc_info.value.suggestion


def test_column_types(adapter):
    """Test NOT NULL, DEFAULT and IDENTITY ordering."""
    key = ColumnDef(name="id", type="int", nullable=False, auto_increment=True)
    assert adapter.build_column_type(key) == "INT NOT NULL IDENTITY(1,1)"

    label = ColumnDef(name="label", type="varchar", length=50, default_value="x")
    assert adapter.build_column_type(label) == "VARCHAR(50) DEFAULT 'x'"

    status = ColumnDef(name="status", type="varchar2(20)", default_value="'open'")
    assert adapter.build_column_type(status) == "VARCHAR2(20) DEFAULT 'open'"


def test_action_sql(adapter):
    """Test ALTER statements for an owner-qualified table."""
    request = AlterTableRequest(
        database="app",
        table="orders",
        actions=[
            AddColumn(column=ColumnDef(name="note", type="varchar", length=20)),
            ModifyColumn(column=ColumnDef(name="total", type="decimal", precision=12, scale=2, nullable=False)),
            AddIndex(index=IndexDef(name="idx_note", columns=["note"])),
            DropIndex(name="idx_old"),
        ],
    )
    assert adapter.plan_alter(request).sql == [
        'ALTER TABLE "APP"."ORDERS" ADD "NOTE" VARCHAR(20)',
        'ALTER TABLE "APP"."ORDERS" MODIFY "TOTAL" DECIMAL(12,2) NOT NULL',
        'CREATE INDEX "IDX_NOTE" ON "APP"."ORDERS" ("NOTE")',
        'DROP INDEX "APP"."IDX_OLD"',
    ]


def test_dm_type_string():
    """Test declared type reconstruction."""
    assert dm_type_string("varchar", 64) == "VARCHAR(64)"
    assert dm_type_string("DECIMAL", 16, 10, 2) == "DECIMAL(10,2)"
    assert dm_type_string("INT", 4) == "INT"
