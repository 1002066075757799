"""
Tests for the adapter factory.
"""

import pytest

from dbadmin.adapters.factory import AdapterFactory, create_default_factory
from dbadmin.adapters.mysql_adapter import MySQLAdapter
from dbadmin.adapters.sqlite_adapter import SQLiteAdapter
from dbadmin.errors import ConfigurationError, ErrorCode
from dbadmin.models import EngineKind


@pytest.fixture
def factory():
    """Return the default factory."""
    return create_default_factory()


def test_supported_types(factory):
    """Test the sorted list of registered engines."""
    assert factory.supported_types() == [
        "clickhouse",
        "dm",
        "kingbase",
        "mongodb",
        "mysql",
        "oracle",
        "postgresql",
        "sqlite",
    ]


@pytest.mark.parametrize("kind", [EngineKind.MYSQL, "mysql", " MySQL "])
def test_create_adapter_accepts_kind_or_string(factory, kind):
    """Test engine resolution."""
    assert isinstance(factory.create_adapter(kind), MySQLAdapter)


def test_adapters_are_shared(factory):
    """Test that one adapter instance serves every request."""
    assert factory.create_adapter("sqlite") is factory.create_adapter(EngineKind.SQLITE)


def test_mssql_has_no_adapter(factory):
    """Test that a declared engine without an adapter is rejected."""
    with pytest.raises(ConfigurationError) as exc_info:
        factory.create_adapter(EngineKind.MSSQL)
    assert exc_info.value.code is ErrorCode.ERR_UNKNOWN_ENGINE
    assert "sqlite" in exc_info.value.suggestion
    assert factory.is_supported("mssql") is False


def test_unknown_string_rejected(factory):
    """Test that unknown engine names are rejected."""
    with pytest.raises(ConfigurationError) as exc_info:
        factory.create_adapter("db2")
    assert exc_info.value.details["engine"] == "db2"
    assert factory.is_supported("db2") is False


def test_registry_is_read_only(factory):
    """Test that the adapter map cannot be changed after construction."""
    with pytest.raises(TypeError):
        factory.adapters[EngineKind.MSSQL] = SQLiteAdapter()


def test_custom_registry():
    """Test a factory built from an explicit registry."""
    factory = AdapterFactory({"sqlite": SQLiteAdapter})
    assert factory.supported_types() == ["sqlite"]
    assert not factory.is_supported(EngineKind.MYSQL)


def test_engines_info(factory):
    """Test the capability summary."""
    info = factory.get_engines_info()
    assert info["postgresql"]["schemaAware"] is True
    assert info["mysql"]["schemaAware"] is False
    assert info["clickhouse"]["unsupportedAlterActions"] == ["ADD_INDEX", "DROP_INDEX"]
    assert info["sqlite"]["unsupportedAlterActions"] == ["DROP_COLUMN", "MODIFY_COLUMN"]
