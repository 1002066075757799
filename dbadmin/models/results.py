"""
Result types returned by the adapter contract.

Query cells are a closed tagged union (``Cell``). Each adapter's decoder
decides the kind once, so formatting code (CSV/SQL export, JSON output)
switches on ``Cell.kind`` and never inspects raw driver values.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional


class CellKind(str, Enum):
    NULL = "null"
    TEXT = "text"
    INTEGER = "integer"
    FLOATING = "floating"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    STRUCTURED = "structured"  # value is canonical JSON text


@dataclass(frozen=True)
class Cell:
    kind: CellKind
    value: Any = None

    @classmethod
    def null(cls) -> "Cell":
        return _NULL_CELL

    @classmethod
    def text(cls, value: str) -> "Cell":
        return cls(CellKind.TEXT, value)

    @classmethod
    def integer(cls, value: int) -> "Cell":
        return cls(CellKind.INTEGER, int(value))

    @classmethod
    def floating(cls, value: float) -> "Cell":
        return cls(CellKind.FLOATING, float(value))

    @classmethod
    def boolean(cls, value: bool) -> "Cell":
        return cls(CellKind.BOOLEAN, bool(value))

    @classmethod
    def timestamp(cls, value: Any) -> "Cell":
        """``value`` is a datetime, date or time."""
        return cls(CellKind.TIMESTAMP, value)

    @classmethod
    def structured(cls, json_text: str) -> "Cell":
        return cls(CellKind.STRUCTURED, json_text)

    @property
    def is_null(self) -> bool:
        return self.kind is CellKind.NULL

    def display(self, null_value: str = "NULL", date_format: Optional[str] = None) -> str:
        """Render as display text (CSV export, grid views)."""
        if self.kind is CellKind.NULL:
            return null_value
        if self.kind is CellKind.BOOLEAN:
            return "1" if self.value else "0"
        if self.kind is CellKind.FLOATING:
            return repr(self.value)
        if self.kind is CellKind.TIMESTAMP:
            if date_format:
                return self.value.strftime(date_format)
            return str(self.value)
        return str(self.value)

    def to_python(self) -> Any:
        """JSON-compatible value."""
        if self.kind is CellKind.TIMESTAMP:
            return self.value.isoformat()
        if self.kind is CellKind.STRUCTURED:
            return json.loads(self.value)
        return self.value


_NULL_CELL = Cell(CellKind.NULL, None)


@dataclass
class ExecuteResult:
    rows_affected: int = 0
    time_cost_ms: float = 0.0
    message: str = "OK"

    def to_dict(self) -> dict:
        return {
            "rowsAffected": self.rows_affected,
            "timeCost": round(self.time_cost_ms, 3),
            "message": self.message,
        }


@dataclass
class QueryResult:
    """
    Rows are keyed by column name. Non-query statements sent through
    ``query()`` produce no columns/rows and only ``rows_affected``.
    """
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Cell]] = field(default_factory=list)
    total: int = 0
    rows_affected: int = 0
    message: str = ""
    time_cost_ms: float = 0.0

    def __post_init__(self):
        if not self.total and self.rows:
            self.total = len(self.rows)

    def values(self, column: str) -> List[Any]:
        """Plain values of one column (convenience for callers and tests)."""
        return [row[column].to_python() if column in row else None for row in self.rows]

    def to_dict(self) -> dict:
        return {
            "columns": list(self.columns),
            "rows": [
                {name: cell.to_python() for name, cell in row.items()}
                for row in self.rows
            ],
            "total": self.total,
            "rowsAffected": self.rows_affected,
            "message": self.message,
            "timeCost": round(self.time_cost_ms, 3),
        }


class AlterStatus(str, Enum):
    APPLIED = "applied"
    # Statement accepted; replicas apply it asynchronously.
    ACCEPTED_PENDING = "accepted_pending"


@dataclass
class AlterResult:
    status: AlterStatus
    statements: List[str] = field(default_factory=list)
    message: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status is AlterStatus.ACCEPTED_PENDING

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "statements": list(self.statements),
            "message": self.message,
        }


def is_temporal(value: Any) -> bool:
    return isinstance(value, (datetime, date, time))
