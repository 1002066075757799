"""
Base Adapter Interface

Defines the capability contract every database adapter implements. Adapters
are stateless translators: the live engine handle is passed into every
call, so a single adapter instance can serve any number of unrelated
handles concurrently.

Engines with a namespace level below the catalog (PostgreSQL, KingBase)
additionally implement SchemaAware. Callers probe for it with
``as_schema_aware()`` and treat its absence as a normal branch.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO, Tuple

from dbadmin.errors import (
    ConnectionError,
    QueryError,
    missing_where_clause,
    unsupported_operation,
    ValidationError,
)
from dbadmin.models import (
    AlterActionType,
    AlterResult,
    AlterTableRequest,
    Cell,
    ColumnDef,
    ConnectionDescriptor,
    CSVOptions,
    EngineKind,
    ExecuteResult,
    IndexInfo,
    QueryOptions,
    QueryResult,
    RoutineInfo,
    SQLOptions,
    TableInfo,
    TableSchema,
)

logger = logging.getLogger(__name__)


# =============================================================================
# STATEMENT CLASSIFICATION
# =============================================================================

class StatementKind(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"
    # Leading keyword says "query" but the body modifies data
    # (e.g. WITH ... INSERT). Resolved by the adapter at execution time.
    AMBIGUOUS = "ambiguous"


_LEADING_NOISE = re.compile(r"^(?:\s+|--[^\n]*(?:\n|$)|/\*.*?\*/|\()+", re.S)
_LEADING_WORD = re.compile(r"[A-Za-z_]+")
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_DATA_MODIFYING = re.compile(r"\b(INSERT|UPDATE|DELETE|MERGE)\b", re.I)


def leading_keyword(sql: str) -> str:
    """First keyword of a statement, skipping comments and parentheses."""
    stripped = _LEADING_NOISE.sub("", sql or "", count=1)
    match = _LEADING_WORD.match(stripped)
    return match.group(0).upper() if match else ""


def classify_statement(sql: str, query_keywords: Iterable[str]) -> StatementKind:
    """
    Classify raw caller SQL as row-producing or row-count-producing by its
    leading keyword.

    A CTE whose body contains a data-modifying keyword is reported as
    AMBIGUOUS rather than guessed.
    """
    keyword = leading_keyword(sql)
    if keyword not in set(query_keywords):
        return StatementKind.MUTATION

    if keyword == "WITH" and _DATA_MODIFYING.search(_STRING_LITERAL.sub("''", sql)):
        return StatementKind.AMBIGUOUS

    return StatementKind.QUERY


# =============================================================================
# RESULT DECODING
# =============================================================================

def to_json_text(value: Any) -> str:
    """Canonical JSON encoding used for structured cells."""
    return json.dumps(value, ensure_ascii=False, sort_keys=True, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def decode_value(value: Any) -> Cell:
    """
    Default driver-value decoder.

    Binary values become display text; DECIMAL stays text so no precision
    is lost; containers become structured JSON cells.
    """
    if value is None:
        return Cell.null()
    if isinstance(value, bool):
        return Cell.boolean(value)
    if isinstance(value, int):
        return Cell.integer(value)
    if isinstance(value, float):
        return Cell.floating(value)
    if isinstance(value, Decimal):
        return Cell.text(str(value))
    if isinstance(value, str):
        return Cell.text(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Cell.text(bytes(value).decode("utf-8", errors="replace"))
    if isinstance(value, (datetime, date, time)):
        return Cell.timestamp(value)
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        return Cell.structured(to_json_text(value))
    return Cell.text(str(value))


# =============================================================================
# COLUMN TYPES
# =============================================================================

_NUMBER_LITERAL = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_STRING_LITERAL_DEFAULT = re.compile(r"^'(?:[^'\\]|\\.|'')*'(::.+)?$", re.DOTALL)
_FUNCTION_CALL = re.compile(r"^[A-Za-z_][\w.$]*\s*\(.*\)$", re.DOTALL)


def declared_type(type_name: str, length: int = 0, precision: int = 0, scale: int = 0) -> str:
    """
    Declared column type with its size suffix.

    Only the base name is uppercased. An argument list already present in
    ``type_name`` (``varchar(255)``, ``enum('a','B')``) is kept verbatim and
    wins over length/precision.
    """
    name, paren, args = type_name.strip().partition("(")
    base = name.strip().upper()
    if paren:
        return f"{base}({args}"
    if length > 0:
        return f"{base}({length})"
    if precision > 0:
        if scale > 0:
            return f"{base}({precision},{scale})"
        return f"{base}({precision})"
    return base


def is_default_expression(value: str) -> bool:
    """
    True when a default is already SQL, as catalogs report it: a number,
    a quoted literal (optionally cast), a cast, a function call or a
    parenthesized expression.
    """
    text = value.strip()
    return bool(
        _NUMBER_LITERAL.match(text)
        or _STRING_LITERAL_DEFAULT.match(text)
        or _FUNCTION_CALL.match(text)
        or (text.startswith("(") and text.endswith(")"))
        or "::" in text
    )


# =============================================================================
# INDEX GROUPING
# =============================================================================

IndexRow = Tuple[str, Optional[str], bool, bool, str]


def group_index_rows(rows: Iterable[IndexRow], engine: str = "", table: str = "") -> List[IndexInfo]:
    """
    Group one-row-per-column catalog output into IndexInfo objects.

    Rows are (index_name, column_name, unique, primary, index_type) and
    must arrive in catalog scan order: index order follows first
    appearance and column order inside an index is preserved. Indexes that
    end up with no resolvable column are logged and dropped.
    """
    grouped: Dict[str, IndexInfo] = {}
    for name, column, unique, primary, index_type in rows:
        idx = grouped.get(name)
        if idx is None:
            idx = IndexInfo(
                name=name,
                unique=bool(unique),
                primary=bool(primary),
                index_type=index_type or "",
            )
            grouped[name] = idx
        if column:
            idx.columns.append(column)

    indexes = []
    for idx in grouped.values():
        if not idx.columns:
            logger.warning(f"[{engine}] index {idx.name} on {table} resolved no columns; skipping")
            continue
        indexes.append(idx)
    return indexes


# =============================================================================
# CAPABILITY CONTRACT
# =============================================================================

class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Every adapter implements:
    - connect() / ping() / close(): handle lifecycle
    - get_databases() / get_tables() / get_table_schema() / get_views() /
      get_indexes(): metadata reads
    - insert() / update() / delete(): row mutation by WHERE fragment
    - execute() / query(): free-form statements
    - alter_table() / rename_table() / get_create_table_sql(): structure
    - export_to_csv() / export_to_sql(): export

    Usage:
        adapter = factory.create(EngineKind.MYSQL)
        handle = adapter.connect(descriptor)
        try:
            tables = adapter.get_tables(handle, "shop")
            result = adapter.query(handle, "SELECT * FROM orders")
        finally:
            adapter.close(handle)
    """

    # Engine identifier
    ENGINE: EngineKind

    # Leading keywords that mark a statement as row-producing
    QUERY_KEYWORDS: Tuple[str, ...] = ("SELECT", "WITH", "EXPLAIN")

    # Identifier quote character
    IDENTIFIER_QUOTE: str = '"'

    # Alter actions this engine rejects up front, mapped to a hint
    UNSUPPORTED_ALTER_ACTIONS: Dict[AlterActionType, str] = {}

    # Whether rename-column must carry a full column definition
    RENAME_REQUIRES_DEFINITION: bool = False

    @property
    def engine_name(self) -> str:
        return self.ENGINE.value

    # ----- lifecycle -----

    @abstractmethod
    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        """
        Open a live engine handle.

        Raises:
            ConfigurationError: If the descriptor is unusable
            ConnectionError: If the engine cannot be reached
        """

    @abstractmethod
    def ping(self, handle: Any) -> None:
        """Raise ConnectionError if the handle is not usable."""

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Release a handle."""

    # ----- metadata reads -----

    @abstractmethod
    def get_databases(self, handle: Any) -> List[str]:
        pass

    @abstractmethod
    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        pass

    @abstractmethod
    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        pass

    @abstractmethod
    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        pass

    def get_indexes(self, handle: Any, database: str, table: str) -> List[IndexInfo]:
        return self.get_table_schema(handle, database, table).indexes

    def get_procedures(self, handle: Any, database: str) -> List[RoutineInfo]:
        """Engines without stored routines return an empty list."""
        return []

    def get_functions(self, handle: Any, database: str) -> List[RoutineInfo]:
        """Engines without stored routines return an empty list."""
        return []

    def get_view_definition(self, handle: Any, database: str, view: str) -> str:
        raise unsupported_operation(self.engine_name, "view definitions")

    def get_routine_definition(self, handle: Any, database: str, name: str, routine_type: str) -> str:
        raise unsupported_operation(self.engine_name, "stored routines")

    # ----- mutation -----

    @abstractmethod
    def insert(self, handle: Any, database: str, table: str, data: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    def update(self, handle: Any, database: str, table: str, data: Dict[str, Any], where: str) -> int:
        pass

    @abstractmethod
    def delete(self, handle: Any, database: str, table: str, where: str) -> int:
        pass

    # ----- free-form -----

    @abstractmethod
    def execute(self, handle: Any, sql: str, *args: Any) -> ExecuteResult:
        pass

    @abstractmethod
    def query(self, handle: Any, sql: str, options: Optional[QueryOptions] = None) -> QueryResult:
        pass

    # ----- structural -----

    @abstractmethod
    def alter_table(self, handle: Any, request: AlterTableRequest) -> AlterResult:
        pass

    @abstractmethod
    def rename_table(self, handle: Any, database: str, old_name: str, new_name: str) -> None:
        pass

    @abstractmethod
    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        pass

    # ----- export -----

    @abstractmethod
    def export_to_csv(
        self, handle: Any, writer: TextIO, database: str, query: str, options: Optional[CSVOptions] = None
    ) -> None:
        pass

    @abstractmethod
    def export_to_sql(
        self, handle: Any, writer: TextIO, database: str, tables: Sequence[str], options: Optional[SQLOptions] = None
    ) -> None:
        pass

    # ----- helpers -----

    def is_query(self, sql: str) -> bool:
        return self.classify(sql) is not StatementKind.MUTATION

    def classify(self, sql: str) -> StatementKind:
        return classify_statement(sql, self.QUERY_KEYWORDS)

    def quote_identifier(self, name: str) -> str:
        """Quote an identifier, doubling any embedded quote character."""
        q = self.IDENTIFIER_QUOTE
        return f"{q}{name.replace(q, q + q)}{q}"

    def quote_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def table_ref(self, database: str, table: str) -> str:
        """Qualified, quoted table reference."""
        if database:
            return f"{self.quote_identifier(database)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    def select_all_sql(self, database: str, table: str, max_rows: int = 0) -> str:
        sql = f"SELECT * FROM {self.table_ref(database, table)}"
        if max_rows > 0:
            sql += f" LIMIT {max_rows}"
        return sql

    def build_column_type(self, column: ColumnDef) -> str:
        """Deterministic column type clause used by DDL builders."""
        raise unsupported_operation(self.engine_name, "column definitions")

    def decode_value(self, value: Any) -> Cell:
        return decode_value(value)

    def decode_row(self, columns: Sequence[str], values: Sequence[Any]) -> Dict[str, Cell]:
        return {name: self.decode_value(value) for name, value in zip(columns, values)}

    def require_where(self, where: Optional[str], operation: str) -> str:
        if where is None or not where.strip():
            raise missing_where_clause(self.engine_name, operation)
        return where.strip()

    def require_data(self, data: Optional[Dict[str, Any]], operation: str) -> Dict[str, Any]:
        if not data:
            raise ValidationError(f"{operation} requires at least one column value", engine=self.engine_name)
        return data

    def wrap_error(self, message: str, error: Exception, kind=QueryError):
        """Attach engine context to a driver exception."""
        return kind(f"{message}: {error}", engine=self.engine_name, original_error=error)

    def get_engine_info(self) -> Dict[str, Any]:
        """Get information about this adapter/engine."""
        return {
            "engine": self.engine_name,
            "queryKeywords": list(self.QUERY_KEYWORDS),
            "schemaAware": isinstance(self, SchemaAware),
            "unsupportedAlterActions": sorted(a.value for a in self.UNSUPPORTED_ALTER_ACTIONS),
        }


class SchemaAware(ABC):
    """
    Optional capability: schema-scoped variants of the metadata reads for
    engines with a namespace level distinct from the catalog.
    """

    @abstractmethod
    def get_schemas(self, handle: Any, database: str) -> List[str]:
        pass

    @abstractmethod
    def get_tables_with_schema(self, handle: Any, database: str, schema: str) -> List[TableInfo]:
        pass

    @abstractmethod
    def get_table_schema_with_schema(self, handle: Any, database: str, schema: str, table: str) -> TableSchema:
        pass

    @abstractmethod
    def get_views_with_schema(self, handle: Any, database: str, schema: str) -> List[TableInfo]:
        pass


def as_schema_aware(adapter: DatabaseAdapter) -> Optional[SchemaAware]:
    """Return the adapter as SchemaAware, or None when it lacks the capability."""
    if isinstance(adapter, SchemaAware):
        return adapter
    return None


def list_schemas(adapter: DatabaseAdapter, handle: Any, database: str) -> List[str]:
    """Schemas of a catalog; engines without the capability report none."""
    schema_aware = as_schema_aware(adapter)
    if schema_aware is None:
        return []
    return schema_aware.get_schemas(handle, database)


__all__ = [
    "ConnectionError",
    "DatabaseAdapter",
    "QueryError",
    "SchemaAware",
    "StatementKind",
    "as_schema_aware",
    "classify_statement",
    "decode_value",
    "group_index_rows",
    "leading_keyword",
    "list_schemas",
    "to_json_text",
]
