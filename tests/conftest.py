"""
Pytest configuration and shared fixtures for dbadmin tests.

Engines other than SQLite are exercised through small fakes that record
every statement they receive.
"""

from types import SimpleNamespace

import pytest

from dbadmin.adapters.sqlite_adapter import SQLiteAdapter
from dbadmin.core.config import get_settings
from dbadmin.models import ConnectionDescriptor, EngineKind


# =============================================================================
# FAKE DB-API CONNECTION
# =============================================================================

class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.description = None
        self.rowcount = -1
        self._rows = []

    def execute(self, sql, params=None):
        self.connection.executed.append((sql, list(params or [])))
        if self.connection.fail_on and self.connection.fail_on in sql:
            raise RuntimeError(self.connection.error)

        if self.connection.results:
            columns, rows = self.connection.results.pop(0)
            self.description = [(name,) for name in columns]
            self._rows = list(rows)
        else:
            self.description = None
            self._rows = []
            self.rowcount = self.connection.rowcount

    def fetchall(self):
        return list(self._rows)

    def close(self):
        self.connection.cursors_closed += 1


class FakeConnection:
    """
    DB-API connection double.

    ``results`` is a queue of (columns, rows) answers, one per execute();
    once empty, statements behave as writes affecting ``rowcount`` rows.
    """

    def __init__(self, results=None, rowcount=1, fail_on=None, error="boom"):
        self.results = list(results or [])
        self.rowcount = rowcount
        self.fail_on = fail_on
        self.error = error
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.cursors_closed = 0
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True

    @property
    def statements(self):
        return [sql for sql, _ in self.executed]


# =============================================================================
# FAKE CLICKHOUSE CLIENT
# =============================================================================

class FakeClickHouseClient:
    """clickhouse_connect Client double; ``query_results`` is a queue of (columns, rows)."""

    def __init__(self, query_results=None):
        self.query_results = list(query_results or [])
        self.queries = []
        self.commands = []
        self.inserts = []
        self.closed = False

    def query(self, sql, parameters=None):
        self.queries.append((sql, parameters))
        columns, rows = self.query_results.pop(0) if self.query_results else ([], [])
        return SimpleNamespace(column_names=columns, result_rows=rows)

    def command(self, sql, parameters=None):
        self.commands.append((sql, parameters))
        return SimpleNamespace(written_rows=0)

    def insert(self, table, data, column_names=None, database=None):
        self.inserts.append((database, table, column_names, data))
        return SimpleNamespace(written_rows=len(data))

    def ping(self):
        return True

    def close(self):
        self.closed = True


# =============================================================================
# FAKE MONGO CLIENT
# =============================================================================

class FakeCollection:
    def __init__(self, documents=None, indexes=None):
        self.documents = list(documents or [])
        self.indexes = list(indexes or [{"name": "_id_", "key": {"_id": 1}}])

    def _matches(self, doc, spec):
        return all(doc.get(k) == v for k, v in spec.items())

    def find_one(self):
        return self.documents[0] if self.documents else None

    def list_indexes(self):
        return iter(self.indexes)

    def insert_one(self, doc):
        self.documents.append(doc)
        return SimpleNamespace(inserted_id=doc.get("_id"))

    def update_many(self, spec, update):
        matched = [d for d in self.documents if self._matches(d, spec)]
        for doc in matched:
            doc.update(update["$set"])
        return SimpleNamespace(modified_count=len(matched))

    def delete_many(self, spec):
        kept = [d for d in self.documents if not self._matches(d, spec)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return SimpleNamespace(deleted_count=deleted)


class FakeMongoDatabase:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def __getitem__(self, collection):
        return self.client.collections.setdefault((self.name, collection), FakeCollection())

    def command(self, command):
        self.client.commands.append((self.name, command))
        if self.client.replies:
            return self.client.replies.pop(0)
        return {"ok": 1.0}

    def list_collection_names(self):
        return [coll for db, coll in self.client.collections if db == self.name]


class FakeMongoClient:
    """MongoClient double; ``replies`` is a queue of command replies."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.commands = []
        self.collections = {}
        self.closed = False

    def __getitem__(self, name):
        return FakeMongoDatabase(self, name)

    def list_database_names(self):
        return sorted({db for db, _ in self.collections})

    def close(self):
        self.closed = True


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def fresh_settings():
    """Clear the cached Settings so environment overrides apply per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_connection():
    """Return a recording DB-API connection."""
    return FakeConnection()


@pytest.fixture
def clickhouse_client():
    """Return a recording ClickHouse client."""
    return FakeClickHouseClient()


@pytest.fixture
def make_clickhouse_client():
    """Return a factory for ClickHouse clients with queued query answers."""
    return FakeClickHouseClient


@pytest.fixture
def mongo_client():
    """Return a recording MongoDB client."""
    return FakeMongoClient()


@pytest.fixture
def sqlite_adapter():
    """Return a SQLite adapter."""
    return SQLiteAdapter()


@pytest.fixture
def sqlite_descriptor():
    """Return a descriptor for an in-memory SQLite database."""
    return ConnectionDescriptor(engine=EngineKind.SQLITE, host=":memory:")


@pytest.fixture
def sqlite_conn(sqlite_adapter, sqlite_descriptor):
    """Return an in-memory SQLite connection with a populated users table."""
    conn = sqlite_adapter.connect(sqlite_descriptor)
    conn.executescript(
        """
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            age INTEGER DEFAULT 0
        );
        CREATE INDEX idx_users_name ON users (name);
        INSERT INTO users (name, age) VALUES ('alice', 30);
        INSERT INTO users (name, age) VALUES ('bob', 25);
        """
    )
    conn.commit()
    yield conn
    conn.close()
