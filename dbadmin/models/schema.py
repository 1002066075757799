"""
Normalized Schema Model

Engine-agnostic descriptions of catalogs, tables, columns, indexes and
routines. Column types are kept exactly as the engine reports them; the
core never normalizes a native type string.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


TABLE_TYPE_BASE = "BASE TABLE"
TABLE_TYPE_VIEW = "VIEW"
TABLE_TYPE_COLLECTION = "COLLECTION"

ROUTINE_PROCEDURE = "PROCEDURE"
ROUTINE_FUNCTION = "FUNCTION"


@dataclass
class TableInfo:
    """Table/View/Collection metadata. Row and size counts are estimates."""
    name: str
    database: str = ""
    schema: str = ""
    table_type: str = TABLE_TYPE_BASE
    rows: int = 0
    size: int = 0
    comment: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "database": self.database,
            "schema": self.schema,
            "tableType": self.table_type,
            "rows": self.rows,
            "size": self.size,
            "comment": self.comment,
        }


@dataclass
class ColumnInfo:
    """Column metadata."""
    name: str
    type: str
    nullable: bool = True
    default_value: Optional[str] = None
    key: str = ""  # "PRI" | "UNI" | "MUL" | ""
    extra: str = ""
    comment: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "defaultValue": self.default_value,
            "key": self.key,
            "extra": self.extra,
            "comment": self.comment,
        }


@dataclass
class IndexInfo:
    """Index metadata. ``columns`` is in catalog (key) order."""
    name: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False
    primary: bool = False
    index_type: str = ""
    comment: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "unique": self.unique,
            "primary": self.primary,
            "indexType": self.index_type,
            "comment": self.comment,
        }


@dataclass
class RoutineInfo:
    """Stored procedure / function metadata."""
    name: str
    routine_type: str
    database: str = ""
    schema: str = ""
    comment: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.routine_type,
            "database": self.database,
            "schema": self.schema,
            "comment": self.comment,
        }


@dataclass
class TableSchema:
    """Full description of one table."""
    database: str
    table: str
    schema: str = ""
    columns: List[ColumnInfo] = field(default_factory=list)
    indexes: List[IndexInfo] = field(default_factory=list)

    @property
    def primary_key(self) -> List[str]:
        for idx in self.indexes:
            if idx.primary:
                return list(idx.columns)
        return [c.name for c in self.columns if c.key == "PRI"]

    def to_dict(self) -> dict:
        return {
            "database": self.database,
            "schema": self.schema,
            "table": self.table,
            "columns": [c.to_dict() for c in self.columns],
            "indexes": [i.to_dict() for i in self.indexes],
        }


@dataclass
class MutationStatus:
    """One row of ClickHouse system.mutations."""
    mutation_id: str
    command: str
    create_time: Optional[datetime] = None
    is_done: bool = False
    latest_fail_reason: str = ""

    def to_dict(self) -> dict:
        return {
            "mutationId": self.mutation_id,
            "command": self.command,
            "createTime": self.create_time.isoformat() if self.create_time else None,
            "isDone": self.is_done,
            "latestFailReason": self.latest_fail_reason,
        }
