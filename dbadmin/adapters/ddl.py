"""
Alter-Table Engine

Shared validation and execution for ALTER TABLE requests. Adapters only
translate actions into SQL (``plan_alter``); everything around it lives
here:

1. An empty request is rejected before any I/O.
2. Every action is checked for the sub-structure its tag requires and for
   engine support, so nothing is executed when any action is invalid.
3. The plan is executed in order. The first failure stops execution and
   raises AlterTableError naming the failing action and the statements
   already applied.

Per-action engines (PostgreSQL, SQLite, Oracle, DM) are not atomic: an
AlterTableError on action #3 means actions #1 and #2 are in effect.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, TYPE_CHECKING

from dbadmin.errors import (
    AlterTableError,
    DbAdminError,
    empty_alter_request,
    missing_definition,
    unsupported_operation,
)
from dbadmin.models import (
    AddColumn,
    AddIndex,
    AlterActionType,
    AlterResult,
    AlterStatus,
    AlterTableRequest,
    DropColumn,
    DropIndex,
    ModifyColumn,
    RenameColumn,
)

if TYPE_CHECKING:
    from dbadmin.adapters.base import DatabaseAdapter

logger = logging.getLogger(__name__)


@dataclass
class PlannedStatement:
    """One statement of an alter plan and the action it implements."""
    sql: str
    action_index: Optional[int] = None
    action_type: Optional[AlterActionType] = None


@dataclass
class AlterPlan:
    """
    Ordered statements for one request.

    ``combined`` plans hold a single statement implementing every action
    (MySQL, ClickHouse), so a failure cannot be tied to one action.
    """
    statements: List[PlannedStatement] = field(default_factory=list)
    combined: bool = False

    def add(self, sql: str, index: int, action_type: AlterActionType) -> None:
        self.statements.append(PlannedStatement(sql=sql, action_index=index, action_type=action_type))

    @property
    def sql(self) -> List[str]:
        return [s.sql for s in self.statements]


def require_actions(adapter: "DatabaseAdapter", request: AlterTableRequest) -> None:
    if not request.actions:
        raise empty_alter_request(adapter.engine_name, request.table)


def validate_request(adapter: "DatabaseAdapter", request: AlterTableRequest) -> None:
    """
    Reject the whole request if any action is malformed or unsupported.

    Runs before any statement is built or executed.
    """
    require_actions(adapter, request)

    engine = adapter.engine_name
    for index, action in enumerate(request.actions):
        action_type = action.action_type

        hint = adapter.UNSUPPORTED_ALTER_ACTIONS.get(action_type)
        if hint is not None:
            error = unsupported_operation(engine, _operation_label(adapter, action_type), hint)
            error.details["action_index"] = index
            error.details["action_type"] = action_type.value
            raise error

        what = _missing_structure(adapter, action)
        if what:
            raise missing_definition(engine, index, action_type.value, what)


def _operation_label(adapter: "DatabaseAdapter", action_type: AlterActionType) -> str:
    if action_type in (AlterActionType.ADD_INDEX, AlterActionType.DROP_INDEX):
        return f"traditional indexes ({action_type.value})"
    return action_type.value


def _missing_structure(adapter: "DatabaseAdapter", action: Any) -> Optional[str]:
    if isinstance(action, (AddColumn, ModifyColumn)):
        if action.column is None:
            return "column definition required"
        if not action.column.name or not action.column.type:
            return "column name and type required"
    elif isinstance(action, DropColumn):
        if not action.name:
            return "column name required"
    elif isinstance(action, RenameColumn):
        if not action.old_name or not action.new_name:
            return "old and new column names required"
        if adapter.RENAME_REQUIRES_DEFINITION and (action.column is None or not action.column.type):
            return "column definition required for rename"
    elif isinstance(action, AddIndex):
        if action.index is None:
            return "index definition required"
        if not action.index.name or not action.index.columns:
            return "index name and columns required"
    elif isinstance(action, DropIndex):
        if not action.name:
            return "index name required"
    return None


def execute_plan(
    adapter: "DatabaseAdapter",
    request: AlterTableRequest,
    plan: AlterPlan,
    run: Callable[[str], Any],
    status: AlterStatus = AlterStatus.APPLIED,
) -> AlterResult:
    """
    Run every planned statement in order through ``run``.

    Raises:
        AlterTableError: On the first failing statement
    """
    engine = adapter.engine_name
    applied: List[str] = []

    for statement in plan.statements:
        logger.info(f"[{engine}] alter {request.table}: {statement.sql}")
        try:
            run(statement.sql)
        except DbAdminError as e:
            raise _alter_failed(engine, plan, statement, applied, e.original_error or e)
        except Exception as e:
            raise _alter_failed(engine, plan, statement, applied, e)
        applied.append(statement.sql)

    if status is AlterStatus.ACCEPTED_PENDING:
        message = "ALTER accepted; replicas apply it asynchronously"
    else:
        message = f"{len(applied)} statement(s) applied"
    return AlterResult(status=status, statements=applied, message=message)


def _alter_failed(
    engine: str,
    plan: AlterPlan,
    statement: PlannedStatement,
    applied: List[str],
    error: Exception,
) -> AlterTableError:
    if plan.combined or statement.action_index is None:
        return AlterTableError(
            f"ALTER TABLE failed: {error}",
            engine=engine,
            applied=applied,
            original_error=error,
        )

    action_type = statement.action_type.value if statement.action_type else None
    return AlterTableError(
        f"action #{statement.action_index + 1} ({action_type}) failed: {error}",
        engine=engine,
        action_index=statement.action_index,
        action_type=action_type,
        applied=applied,
        original_error=error,
    )
