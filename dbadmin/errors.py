"""
dbadmin - Structured Error Handling

Every failure raised by the adapter layer is a DbAdminError subclass, so
callers can branch on the error class (or its code) instead of parsing
driver messages.

ERROR TAXONOMY:
---------------
1. ConfigurationError / ValidationError
   Malformed descriptor, unknown engine, missing DDL sub-structure, empty
   WHERE fragment, empty ALTER request. Always raised before any I/O.
2. UnsupportedOperationError
   The operation has no meaning for the engine (secondary indexes on
   ClickHouse, DDL on MongoDB). Named, so callers can branch on it.
3. ConnectionError / QueryError
   Engine I/O and catalog failures. The driver exception is attached as
   ``original_error`` and the engine name is always set.
4. AlterTableError
   A multi-statement ALTER stopped part way. Names the failing action and
   lists the statements that were already applied.

Replicated ClickHouse ALTERs are NOT errors: they return an
AlterResult with status ACCEPTED_PENDING.

ERROR FORMAT:
-------------
{
    "error": {
        "code": "ERR_2001",
        "message": "clickhouse does not support add_index",
        "engine": "clickhouse",
        "details": {"operation": "add_index"},
        "suggestion": "use ORDER BY / PRIMARY KEY instead"
    }
}
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCode(str, Enum):
    """Unique error codes for every error type."""

    # Configuration & Validation (1xxx)
    ERR_CONFIG_INVALID = "ERR_1001"
    ERR_UNKNOWN_ENGINE = "ERR_1002"
    ERR_VALIDATION = "ERR_1003"
    ERR_MISSING_WHERE = "ERR_1004"
    ERR_EMPTY_ALTER = "ERR_1005"
    ERR_MISSING_DEFINITION = "ERR_1006"
    ERR_DRIVER_MISSING = "ERR_1007"

    # Engine capability (2xxx)
    ERR_UNSUPPORTED_OPERATION = "ERR_2001"

    # Engine I/O (3xxx)
    ERR_CONNECTION_FAILED = "ERR_3001"
    ERR_QUERY_FAILED = "ERR_3002"
    ERR_ALTER_FAILED = "ERR_3003"

    # Connection registry (4xxx)
    ERR_CONNECTION_NOT_FOUND = "ERR_4001"
    ERR_ENCRYPTION_FAILED = "ERR_4002"
    ERR_DECRYPTION_FAILED = "ERR_4003"

    # Type mapping (5xxx)
    ERR_TYPE_MAPPING_CONFIG = "ERR_5001"
    ERR_INVALID_TYPE_CHOICE = "ERR_5002"

    # Internal (9xxx)
    ERR_INTERNAL = "ERR_9001"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class DbAdminError(Exception):
    """
    Structured error with all context needed for debugging.

    Attributes:
        message: Human-readable error message
        code: Unique error code for searching logs
        engine: Engine the error originated from (if any)
        details: Additional context (dict)
        suggestion: How to fix the issue
        original_error: The wrapped driver exception (if any)
    """

    default_code = ErrorCode.ERR_INTERNAL

    def __init__(
        self,
        message: str,
        engine: Optional[str] = None,
        original_error: Optional[Exception] = None,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.engine = engine
        self.original_error = original_error
        self.code = code or self.default_code
        self.details = details or {}
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.engine:
            return f"[{self.engine}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format consumed by the HTTP layer."""
        error_dict = {
            "code": self.code.value,
            "message": self.message,
        }

        if self.engine:
            error_dict["engine"] = self.engine

        if self.details:
            error_dict["details"] = self.details

        if self.suggestion:
            error_dict["suggestion"] = self.suggestion

        if self.original_error is not None:
            error_dict["cause"] = str(self.original_error)

        error_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

        return {"error": error_dict}

    def log(self, level: str = "error"):
        """Log the error with context."""
        log_msg = f"[{self.code.value}] {self}"
        if self.details:
            log_msg += f" | details={self.details}"
        if self.original_error is not None:
            log_msg += f" | cause={self.original_error}"

        getattr(logger, level)(log_msg)


class ConfigurationError(DbAdminError):
    """Descriptor or factory configuration is unusable."""
    default_code = ErrorCode.ERR_CONFIG_INVALID


class ValidationError(DbAdminError):
    """Request rejected before any I/O was attempted."""
    default_code = ErrorCode.ERR_VALIDATION


class UnsupportedOperationError(DbAdminError):
    """The engine has no concept of the requested operation."""
    default_code = ErrorCode.ERR_UNSUPPORTED_OPERATION

    def __init__(self, message: str, engine: Optional[str] = None, operation: Optional[str] = None, **kwargs):
        super().__init__(message, engine=engine, **kwargs)
        self.operation = operation
        if operation:
            self.details.setdefault("operation", operation)


class ConnectionError(DbAdminError):
    """Failed to open, ping or close an engine handle."""
    default_code = ErrorCode.ERR_CONNECTION_FAILED


class QueryError(DbAdminError):
    """The engine rejected a statement or catalog read."""
    default_code = ErrorCode.ERR_QUERY_FAILED


class AlterTableError(DbAdminError):
    """
    An ALTER request stopped part way through.

    Attributes:
        action_index: Zero-based index of the failing action, or None when
            the engine applies all actions in one combined statement
        action_type: Tag of the failing action (e.g. "MODIFY_COLUMN")
        applied: Statements that had already been executed
    """
    default_code = ErrorCode.ERR_ALTER_FAILED

    def __init__(
        self,
        message: str,
        engine: Optional[str] = None,
        action_index: Optional[int] = None,
        action_type: Optional[str] = None,
        applied: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(message, engine=engine, **kwargs)
        self.action_index = action_index
        self.action_type = action_type
        self.applied = list(applied or [])
        if action_index is not None:
            self.details.setdefault("action_index", action_index)
        if action_type:
            self.details.setdefault("action_type", action_type)
        if self.applied:
            self.details.setdefault("applied", self.applied)


class RegistryError(DbAdminError):
    """Connection registry lookups and credential handling."""
    default_code = ErrorCode.ERR_CONNECTION_NOT_FOUND


class TypeMappingError(DbAdminError):
    """Type mapping rule file or user choice problem."""
    default_code = ErrorCode.ERR_TYPE_MAPPING_CONFIG


# =============================================================================
# ERROR FACTORY FUNCTIONS
# =============================================================================

def unknown_engine(engine: str, supported: Optional[List[str]] = None) -> ConfigurationError:
    """Create unknown engine error."""
    details = {"engine": engine}
    if supported:
        details["supported"] = supported

    return ConfigurationError(
        f"No adapter registered for engine '{engine}'",
        code=ErrorCode.ERR_UNKNOWN_ENGINE,
        details=details,
        suggestion=f"Use one of: {', '.join(supported)}" if supported else None,
    )


def driver_missing(engine: str, package: str) -> ConfigurationError:
    """Create missing driver error."""
    return ConfigurationError(
        f"Driver for {engine} is not installed",
        engine=engine,
        code=ErrorCode.ERR_DRIVER_MISSING,
        details={"package": package},
        suggestion=f"Run: pip install {package}",
    )


def missing_where_clause(engine: str, operation: str) -> ValidationError:
    """UPDATE/DELETE without a WHERE fragment is never executed."""
    return ValidationError(
        f"{operation} requires a WHERE condition",
        engine=engine,
        code=ErrorCode.ERR_MISSING_WHERE,
        details={"operation": operation},
        suggestion="Pass an explicit WHERE fragment; use a tautology such as '1=1' to target every row",
    )


def empty_alter_request(engine: str, table: str) -> ValidationError:
    """Create empty alter request error."""
    return ValidationError(
        "no actions specified",
        engine=engine,
        code=ErrorCode.ERR_EMPTY_ALTER,
        details={"table": table},
    )


def missing_definition(engine: str, index: int, action_type: str, what: str) -> ValidationError:
    """An alter action is missing the sub-structure its tag requires."""
    return ValidationError(
        f"action #{index + 1} ({action_type}): {what}",
        engine=engine,
        code=ErrorCode.ERR_MISSING_DEFINITION,
        details={"action_index": index, "action_type": action_type},
    )


def unsupported_operation(engine: str, operation: str, hint: Optional[str] = None) -> UnsupportedOperationError:
    """Create engine-unsupported-operation error."""
    message = f"{engine} does not support {operation}"
    if hint:
        message += f", {hint}"

    return UnsupportedOperationError(
        message,
        engine=engine,
        operation=operation,
        suggestion=hint,
    )


def connection_not_found(connection_id: str) -> RegistryError:
    """Create connection not found error."""
    return RegistryError(
        f"Connection '{connection_id}' not found",
        code=ErrorCode.ERR_CONNECTION_NOT_FOUND,
        details={"connection_id": connection_id},
        suggestion="Register the connection with add_connection() first",
    )


def decryption_failed(connection_id: Optional[str] = None) -> RegistryError:
    """Create decryption failure error."""
    details = {}
    if connection_id:
        details["connection_id"] = connection_id

    return RegistryError(
        "Failed to decrypt stored credentials",
        code=ErrorCode.ERR_DECRYPTION_FAILED,
        details=details,
        suggestion="The DBADMIN_SECRET_KEY may have changed. Re-enter the connection password.",
    )


def invalid_type_choice(source_type: str, choice: str, valid: List[str]) -> TypeMappingError:
    """Create invalid user type choice error."""
    return TypeMappingError(
        f"invalid choice for type {source_type}: {choice}",
        code=ErrorCode.ERR_INVALID_TYPE_CHOICE,
        details={"source_type": source_type, "choice": choice, "valid": valid},
        suggestion=f"Choose one of: {', '.join(valid)}" if valid else None,
    )
