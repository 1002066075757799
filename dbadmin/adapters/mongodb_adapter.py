"""
MongoDB Adapter

Collections stand in for tables. Free-form statements are database
commands written as Extended JSON; any text that is not a JSON document
is taken as a collection name and run as ``find``.

The handle is a pymongo MongoClient.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, TextIO
from urllib.parse import quote_plus

try:
    import pymongo
    from bson import json_util
    from bson.decimal128 import Decimal128
    from bson.objectid import ObjectId
    PYMONGO_AVAILABLE = True
except ImportError:
    PYMONGO_AVAILABLE = False
    pymongo = None

from dbadmin.adapters import ddl
from dbadmin.adapters.base import DatabaseAdapter, decode_value
from dbadmin.core.config import get_settings
from dbadmin.errors import (
    ConfigurationError,
    ConnectionError,
    QueryError,
    ValidationError,
    driver_missing,
    missing_where_clause,
    unsupported_operation,
)
from dbadmin.models import (
    AlterResult,
    AlterTableRequest,
    Cell,
    ColumnInfo,
    ConnectionDescriptor,
    CSVOptions,
    EngineKind,
    ExecuteResult,
    IndexInfo,
    QueryOptions,
    QueryResult,
    SQLOptions,
    TableInfo,
    TableSchema,
    TABLE_TYPE_COLLECTION,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 27017
ADMIN_DB = "admin"
PRIMARY_INDEX = "_id_"


def bson_type_name(value: Any) -> str:
    """BSON type alias ($type names) for a decoded Python value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int" if -2 ** 31 <= value < 2 ** 31 else "long"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "string"
    if isinstance(value, datetime):
        return "date"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, (bytes, bytearray)):
        return "binData"
    if PYMONGO_AVAILABLE:
        if isinstance(value, ObjectId):
            return "objectId"
        if isinstance(value, Decimal128):
            return "decimal"
    return type(value).__name__


def order_columns(documents: Sequence[Dict[str, Any]]) -> List[str]:
    """Union of document keys in first-seen order, with ``_id`` first."""
    seen: Dict[str, None] = {}
    for doc in documents:
        for key in doc:
            seen.setdefault(key, None)
    columns = list(seen)
    if "_id" in seen:
        columns.remove("_id")
        columns.insert(0, "_id")
    return columns


class MongoDBAdapter(DatabaseAdapter):
    """
    Adapter for MongoDB (pymongo).

    Descriptor:
        host / port: Server address (default port: 27017)
        username / password: Credentials
        database: Default database
        params:
            uri: Full connection string, used when host is empty

    Example:
        adapter = MongoDBAdapter()
        client = adapter.connect(ConnectionDescriptor(engine=EngineKind.MONGODB, host="localhost"))
        adapter.query(client, "users", QueryOptions(database="app", page=2, page_size=50))
        adapter.query(client, '{"count": "users"}', QueryOptions(database="app"))
    """

    ENGINE = EngineKind.MONGODB
    IDENTIFIER_QUOTE = '"'
    QUERY_KEYWORDS = ()

    # ----- lifecycle -----

    def build_uri(self, descriptor: ConnectionDescriptor) -> str:
        if descriptor.host:
            port = descriptor.port or DEFAULT_PORT
            if descriptor.username and descriptor.password:
                auth = f"{quote_plus(descriptor.username)}:{quote_plus(descriptor.password)}@"
                return f"mongodb://{auth}{descriptor.host}:{port}"
            return f"mongodb://{descriptor.host}:{port}"

        uri = descriptor.param("uri")
        if uri:
            return uri

        raise ConfigurationError(
            "MongoDB connection needs a host or a uri param",
            engine=self.engine_name,
        )

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        if not PYMONGO_AVAILABLE:
            raise driver_missing(self.engine_name, "pymongo")

        uri = self.build_uri(descriptor)
        safe_host = descriptor.host or uri.split("@")[-1]
        logger.info(f"Connecting to MongoDB: {safe_host}")

        timeout_ms = get_settings().connect_timeout * 1000
        client = pymongo.MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        try:
            client[ADMIN_DB].command("ping")
        except Exception as e:
            client.close()
            raise ConnectionError(
                f"Failed to connect to MongoDB: {e}",
                engine=self.engine_name,
                original_error=e,
            )
        return client

    def ping(self, handle: Any) -> None:
        try:
            handle[ADMIN_DB].command("ping")
        except Exception as e:
            raise self.wrap_error("MongoDB ping failed", e, kind=ConnectionError)

    def close(self, handle: Any) -> None:
        try:
            handle.close()
        except Exception as e:
            raise self.wrap_error("MongoDB close failed", e, kind=ConnectionError)

    # ----- helpers -----

    def run_command(self, handle: Any, database: str, command: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return handle[database or ADMIN_DB].command(command)
        except Exception as e:
            raise QueryError(
                f"MongoDB command failed: {e}",
                engine=self.engine_name,
                original_error=e,
                details={"database": database, "command": next(iter(command), "")},
            )

    def parse_document(self, text: str) -> Optional[Dict[str, Any]]:
        """Extended JSON document, or None when ``text`` is not one."""
        try:
            value = json_util.loads(text)
        except ValueError:
            return None
        return value if isinstance(value, dict) else None

    def parse_filter(self, where: str, operation: str) -> Dict[str, Any]:
        where = self.require_where(where, operation)
        spec = self.parse_document(where)
        if spec is None:
            raise ValidationError(
                f"invalid MongoDB filter JSON: {where[:200]}",
                engine=self.engine_name,
                details={"operation": operation},
            )
        if not spec:
            raise missing_where_clause(self.engine_name, operation)
        return spec

    def decode_value(self, value: Any) -> Cell:
        if PYMONGO_AVAILABLE:
            if isinstance(value, ObjectId):
                return Cell.text(str(value))
            if isinstance(value, Decimal128):
                return Cell.text(str(value))
            if isinstance(value, (dict, list)):
                return Cell.structured(json_util.dumps(value))
        return decode_value(value)

    # ----- metadata -----

    def get_databases(self, handle: Any) -> List[str]:
        try:
            return list(handle.list_database_names())
        except Exception as e:
            raise self.wrap_error("MongoDB list databases failed", e)

    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        try:
            names = handle[database].list_collection_names()
        except Exception as e:
            raise self.wrap_error("MongoDB list collections failed", e)
        return [
            TableInfo(name=name, database=database, table_type=TABLE_TYPE_COLLECTION)
            for name in sorted(names)
        ]

    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        """Columns are inferred from the first document of the collection."""
        try:
            doc = handle[database][table].find_one()
        except Exception as e:
            raise self.wrap_error(f"MongoDB sample of {table} failed", e)

        columns = []
        for name, value in (doc or {}).items():
            columns.append(
                ColumnInfo(
                    name=name,
                    type=bson_type_name(value),
                    nullable=name != "_id",
                    key="PRI" if name == "_id" else "",
                )
            )

        return TableSchema(
            database=database,
            table=table,
            columns=columns,
            indexes=self.get_indexes(handle, database, table),
        )

    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        return []

    def get_indexes(self, handle: Any, database: str, table: str) -> List[IndexInfo]:
        try:
            specs = list(handle[database][table].list_indexes())
        except Exception as e:
            raise self.wrap_error(f"MongoDB list indexes of {table} failed", e)

        indexes = []
        for spec in specs:
            name = spec.get("name", "")
            indexes.append(
                IndexInfo(
                    name=name,
                    columns=list(spec.get("key", {}).keys()),
                    unique=bool(spec.get("unique", False)) or name == PRIMARY_INDEX,
                    primary=name == PRIMARY_INDEX,
                )
            )
        return indexes

    # ----- mutation -----

    def insert(self, handle: Any, database: str, table: str, data: Dict[str, Any]) -> int:
        data = self.require_data(data, "INSERT")
        try:
            handle[database][table].insert_one(dict(data))
        except Exception as e:
            raise self.wrap_error(f"MongoDB insert into {table} failed", e)
        return 1

    def update(self, handle: Any, database: str, table: str, data: Dict[str, Any], where: str) -> int:
        spec = self.parse_filter(where, "UPDATE")
        data = self.require_data(data, "UPDATE")
        try:
            result = handle[database][table].update_many(spec, {"$set": dict(data)})
        except Exception as e:
            raise self.wrap_error(f"MongoDB update of {table} failed", e)
        return result.modified_count

    def delete(self, handle: Any, database: str, table: str, where: str) -> int:
        spec = self.parse_filter(where, "DELETE")
        try:
            result = handle[database][table].delete_many(spec)
        except Exception as e:
            raise self.wrap_error(f"MongoDB delete from {table} failed", e)
        return result.deleted_count

    # ----- free-form -----

    def execute(self, handle: Any, sql: str, *args: Any) -> ExecuteResult:
        """
        Run an Extended JSON command. The first positional arg, when a
        string, names the target database (default: admin).
        """
        command = self.parse_document(sql)
        if not command:
            raise ValidationError(
                f"invalid MongoDB command JSON: {sql[:200]}",
                engine=self.engine_name,
            )
        database = args[0] if args and isinstance(args[0], str) else ADMIN_DB

        start_time = time.perf_counter()
        result = self.run_command(handle, database, command)
        affected = result.get("n", 0) if isinstance(result, dict) else 0
        return ExecuteResult(
            rows_affected=int(affected or 0),
            time_cost_ms=(time.perf_counter() - start_time) * 1000,
        )

    def query(self, handle: Any, sql: str, options: Optional[QueryOptions] = None) -> QueryResult:
        options = options or QueryOptions()
        command = self.parse_document(sql.strip())
        if command is None:
            command = {"find": sql.strip()}

        if "find" in command:
            if options.page_size > 0:
                command["batchSize"] = options.page_size
                command["limit"] = options.page_size
                if options.page > 1:
                    command["skip"] = (options.page - 1) * options.page_size
            if options.sort_by:
                command["sort"] = {options.sort_by: -1 if options.sort_desc else 1}

        start_time = time.perf_counter()
        result = self.run_command(handle, options.database, command)

        cursor = result.get("cursor")
        batch = None
        if isinstance(cursor, dict):
            batch = cursor.get("firstBatch")
            if batch is None:
                batch = cursor.get("nextBatch")

        if batch is None:
            return QueryResult(
                columns=["result"],
                rows=[{"result": self.decode_value(dict(result))}],
                total=1,
                time_cost_ms=(time.perf_counter() - start_time) * 1000,
            )

        documents = [doc for doc in batch if isinstance(doc, dict)]
        columns = order_columns(documents)
        rows = [{name: self.decode_value(doc.get(name)) for name in columns} for doc in documents]
        return QueryResult(
            columns=columns,
            rows=rows,
            total=len(rows),
            time_cost_ms=(time.perf_counter() - start_time) * 1000,
        )

    # ----- structural -----

    def alter_table(self, handle: Any, request: AlterTableRequest) -> AlterResult:
        ddl.require_actions(self, request)
        raise unsupported_operation(self.engine_name, "ALTER TABLE", "collections have no fixed schema")

    def rename_table(self, handle: Any, database: str, old_name: str, new_name: str) -> None:
        self.run_command(
            handle,
            ADMIN_DB,
            {"renameCollection": f"{database}.{old_name}", "to": f"{database}.{new_name}"},
        )

    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        return f'{{ "create": "{table}" }}'

    # ----- export -----

    def export_to_csv(
        self, handle: Any, writer: TextIO, database: str, query: str, options: Optional[CSVOptions] = None
    ) -> None:
        from dbadmin.export.csv_exporter import CSVExporter

        CSVExporter(options).write(writer, self.query(handle, query, QueryOptions(database=database)))

    def export_to_sql(
        self, handle: Any, writer: TextIO, database: str, tables: Sequence[str], options: Optional[SQLOptions] = None
    ) -> None:
        raise unsupported_operation(self.engine_name, "SQL export")
