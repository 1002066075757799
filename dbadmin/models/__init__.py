"""
Normalized data model shared by every adapter.
"""

from dbadmin.models.connection import ConnectionDescriptor, ConnectionTestResult, EngineKind
from dbadmin.models.schema import (
    ColumnInfo,
    IndexInfo,
    MutationStatus,
    RoutineInfo,
    TableInfo,
    TableSchema,
    ROUTINE_FUNCTION,
    ROUTINE_PROCEDURE,
    TABLE_TYPE_BASE,
    TABLE_TYPE_COLLECTION,
    TABLE_TYPE_VIEW,
)
from dbadmin.models.requests import (
    AddColumn,
    AddIndex,
    AlterActionType,
    AlterTableAction,
    AlterTableRequest,
    ColumnDef,
    CSVOptions,
    DropColumn,
    DropIndex,
    IndexDef,
    ModifyColumn,
    QueryOptions,
    RenameColumn,
    SQLOptions,
    alter_action_from_dict,
)
from dbadmin.models.results import (
    AlterResult,
    AlterStatus,
    Cell,
    CellKind,
    ExecuteResult,
    QueryResult,
)

__all__ = [
    "ConnectionDescriptor",
    "ConnectionTestResult",
    "EngineKind",
    "ColumnInfo",
    "IndexInfo",
    "MutationStatus",
    "RoutineInfo",
    "TableInfo",
    "TableSchema",
    "ROUTINE_FUNCTION",
    "ROUTINE_PROCEDURE",
    "TABLE_TYPE_BASE",
    "TABLE_TYPE_COLLECTION",
    "TABLE_TYPE_VIEW",
    "AddColumn",
    "AddIndex",
    "AlterActionType",
    "AlterTableAction",
    "AlterTableRequest",
    "ColumnDef",
    "CSVOptions",
    "DropColumn",
    "DropIndex",
    "IndexDef",
    "ModifyColumn",
    "QueryOptions",
    "RenameColumn",
    "SQLOptions",
    "alter_action_from_dict",
    "AlterResult",
    "AlterStatus",
    "Cell",
    "CellKind",
    "ExecuteResult",
    "QueryResult",
]
