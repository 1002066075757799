"""
Request structures: DDL definitions, ALTER TABLE actions and query/export
options.

ALTER TABLE actions are a closed set of tagged variants. Each variant
carries only the fields that make sense for its tag, and ``action_type``
reports the wire tag used by the HTTP layer ("ADD_COLUMN", ...).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from dbadmin.errors import ValidationError
from dbadmin.models.schema import ColumnInfo


# =============================================================================
# DDL DEFINITIONS
# =============================================================================

@dataclass
class ColumnDef:
    """Column definition used by add/modify/rename column actions."""
    name: str
    type: str
    length: int = 0
    precision: int = 0
    scale: int = 0
    nullable: bool = True
    default_value: Optional[str] = None
    auto_increment: bool = False
    comment: str = ""
    after: str = ""

    @classmethod
    def from_column_info(cls, info: ColumnInfo) -> "ColumnDef":
        """
        Turn a described column back into a definition for the same engine.

        The native type string already carries its length/precision, so
        those fields stay zero.
        """
        extra = (info.extra or "").lower()
        return cls(
            name=info.name,
            type=info.type,
            nullable=info.nullable,
            default_value=info.default_value,
            auto_increment="auto_increment" in extra or "identity" in extra,
            comment=info.comment or "",
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnDef":
        default = data.get("defaultValue", data.get("default_value"))
        return cls(
            name=data.get("name", ""),
            type=data.get("type", ""),
            length=int(data.get("length") or 0),
            precision=int(data.get("precision") or 0),
            scale=int(data.get("scale") or 0),
            nullable=bool(data.get("nullable", True)),
            default_value=None if default in (None, "") else str(default),
            auto_increment=bool(data.get("autoIncrement", data.get("auto_increment", False))),
            comment=data.get("comment", "") or "",
            after=data.get("after", "") or "",
        )


@dataclass
class IndexDef:
    """Index definition used by add-index actions."""
    name: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False
    index_type: str = ""
    comment: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexDef":
        return cls(
            name=data.get("name", ""),
            columns=list(data.get("columns") or []),
            unique=bool(data.get("unique", False)),
            index_type=data.get("type", data.get("index_type", "")) or "",
            comment=data.get("comment", "") or "",
        )


# =============================================================================
# ALTER TABLE ACTIONS
# =============================================================================

class AlterActionType(str, Enum):
    ADD_COLUMN = "ADD_COLUMN"
    DROP_COLUMN = "DROP_COLUMN"
    MODIFY_COLUMN = "MODIFY_COLUMN"
    RENAME_COLUMN = "RENAME_COLUMN"
    ADD_INDEX = "ADD_INDEX"
    DROP_INDEX = "DROP_INDEX"


@dataclass
class AddColumn:
    column: Optional[ColumnDef]
    action_type: ClassVar[AlterActionType] = AlterActionType.ADD_COLUMN


@dataclass
class DropColumn:
    name: str
    action_type: ClassVar[AlterActionType] = AlterActionType.DROP_COLUMN


@dataclass
class ModifyColumn:
    column: Optional[ColumnDef]
    action_type: ClassVar[AlterActionType] = AlterActionType.MODIFY_COLUMN


@dataclass
class RenameColumn:
    """``column`` is required by dialects that retype on rename (MySQL)."""
    old_name: str
    new_name: str
    column: Optional[ColumnDef] = None
    action_type: ClassVar[AlterActionType] = AlterActionType.RENAME_COLUMN


@dataclass
class AddIndex:
    index: Optional[IndexDef]
    action_type: ClassVar[AlterActionType] = AlterActionType.ADD_INDEX


@dataclass
class DropIndex:
    name: str
    action_type: ClassVar[AlterActionType] = AlterActionType.DROP_INDEX


AlterTableAction = Union[AddColumn, DropColumn, ModifyColumn, RenameColumn, AddIndex, DropIndex]


def alter_action_from_dict(data: Dict[str, Any]) -> AlterTableAction:
    """
    Parse the wire shape used by the HTTP layer:

        {"type": "ADD_COLUMN", "column": {...}}
        {"type": "DROP_COLUMN", "oldName": "x"}
        {"type": "RENAME_COLUMN", "oldName": "a", "newName": "b", "column": {...}}
        {"type": "ADD_INDEX", "index": {...}}
        {"type": "DROP_INDEX", "oldName": "idx"}
    """
    raw_type = str(data.get("type", "")).upper()
    try:
        action_type = AlterActionType(raw_type)
    except ValueError:
        raise ValidationError(
            f"unsupported action type: {raw_type or '<empty>'}",
            details={"supported": [t.value for t in AlterActionType]},
        )

    column = ColumnDef.from_dict(data["column"]) if data.get("column") else None
    old_name = data.get("oldName", data.get("old_name", "")) or ""

    if action_type is AlterActionType.ADD_COLUMN:
        return AddColumn(column=column)
    if action_type is AlterActionType.DROP_COLUMN:
        return DropColumn(name=old_name)
    if action_type is AlterActionType.MODIFY_COLUMN:
        return ModifyColumn(column=column)
    if action_type is AlterActionType.RENAME_COLUMN:
        return RenameColumn(
            old_name=old_name,
            new_name=data.get("newName", data.get("new_name", "")) or "",
            column=column,
        )
    if action_type is AlterActionType.ADD_INDEX:
        return AddIndex(index=IndexDef.from_dict(data["index"]) if data.get("index") else None)
    return DropIndex(name=old_name)


@dataclass
class AlterTableRequest:
    """
    Ordered structural changes for one table.

    ``schema`` is only consulted by engines with a namespace level below the
    catalog (PostgreSQL, KingBase); it defaults to "public" there.
    """
    database: str
    table: str
    actions: List[AlterTableAction] = field(default_factory=list)
    schema: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlterTableRequest":
        return cls(
            database=data.get("database", "") or "",
            table=data.get("table", "") or "",
            actions=[alter_action_from_dict(a) for a in data.get("actions") or []],
            schema=data.get("schema", "") or "",
        )


# =============================================================================
# QUERY / EXPORT OPTIONS
# =============================================================================

@dataclass
class QueryOptions:
    """Paging applies to engines that page server-side (MongoDB)."""
    database: str = ""
    page: int = 0
    page_size: int = 0
    sort_by: str = ""
    sort_desc: bool = False


@dataclass
class CSVOptions:
    include_header: bool = True
    separator: str = ","
    quote: str = '"'
    encoding: str = "UTF-8"
    null_value: str = "NULL"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    max_rows: int = 0


@dataclass
class SQLOptions:
    include_create_table: bool = True
    include_drop_table: bool = False
    batch_insert: bool = False
    batch_size: int = 100
    structure_only: bool = False
    max_rows: int = 0
    query: str = ""
    table_name: str = ""
