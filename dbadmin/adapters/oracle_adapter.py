"""
Oracle Adapter

The "database" of the contract is an Oracle user/schema (owner). Object
names are stored uppercase, so identifiers are uppercased before quoting.

Caller SQL written with LIMIT n is rewritten to a ROWNUM wrapper, which
works on every Oracle version (FETCH FIRST needs 12c).
"""

import logging
import re
from typing import Any, Dict, List

try:
    import oracledb
    ORACLEDB_AVAILABLE = True
except ImportError:
    ORACLEDB_AVAILABLE = False
    oracledb = None

from dbadmin.adapters.base import declared_type, decode_value, group_index_rows, is_default_expression
from dbadmin.adapters.sql_base import DBAPIAdapter
from dbadmin.errors import ConnectionError, ValidationError, driver_missing
from dbadmin.models import (
    AddColumn,
    AddIndex,
    AlterTableAction,
    AlterTableRequest,
    Cell,
    ColumnDef,
    ColumnInfo,
    ConnectionDescriptor,
    DropColumn,
    DropIndex,
    EngineKind,
    ExecuteResult,
    ModifyColumn,
    RenameColumn,
    RoutineInfo,
    ROUTINE_FUNCTION,
    ROUTINE_PROCEDURE,
    TableInfo,
    TableSchema,
    TABLE_TYPE_BASE,
    TABLE_TYPE_VIEW,
)

logger = logging.getLogger(__name__)

# Only a trailing LIMIT clause is rewritten; LIMIT inside a subquery or a
# string literal never reaches the end of the statement.
LIMIT_PATTERN = re.compile(
    r"(?is)^(?P<body>.*?)\s+LIMIT\s+(?P<first>\d+)(?:\s*,\s*(?P<count>\d+)|\s+OFFSET\s+(?P<offset>\d+))?$"
)

# Params consumed while building the DSN, never passed to the driver
INTERNAL_PARAMS = ("connectType", "service", "service_name", "sid")

SYSTEM_USERS = ("SYS", "SYSTEM", "SYSAUX", "DBSNMP", "OUTLN", "APPQOSSYS")

LENGTH_TYPES = ("VARCHAR2", "NVARCHAR2", "CHAR", "NCHAR", "VARCHAR", "RAW")
PRECISION_TYPES = ("NUMBER", "DECIMAL", "NUMERIC", "FLOAT")
PASSTHROUGH_DEFAULTS = ("SYSDATE", "SYSTIMESTAMP", "CURRENT_TIMESTAMP", "NULL")


def rewrite_limit(sql: str) -> str:
    """
    Strip trailing semicolons and turn ``SELECT ... LIMIT n`` into
    ``SELECT * FROM (SELECT ...) WHERE ROWNUM <= n``.

    A trailing ``LIMIT n OFFSET m`` (or ``LIMIT m, n``) has no ROWNUM
    equivalent that keeps the column list, so it raises ValidationError.
    """
    query = sql.strip().rstrip("; \t\n\r")
    if query.upper().startswith("SELECT"):
        match = LIMIT_PATTERN.match(query)
        if match:
            if match.group("count") or match.group("offset"):
                raise ValidationError(
                    "LIMIT with an offset cannot be rewritten for Oracle",
                    engine=EngineKind.ORACLE.value,
                    details={"sql": sql},
                    suggestion="Use OFFSET m ROWS FETCH NEXT n ROWS ONLY",
                )
            query = f"SELECT * FROM ({match.group('body').strip()}) WHERE ROWNUM <= {match.group('first')}"
    return query


def read_lob(value: Any) -> Any:
    """CLOB/BLOB values are read into memory."""
    if value is not None and hasattr(value, "read"):
        return value.read()
    return value


class OracleAdapter(DBAPIAdapter):
    """
    Adapter for Oracle Database (python-oracledb, thin mode).

    Descriptor:
        host / port: Listener address (default port: 1521)
        username / password: Credentials
        database: Service name, or SID when params connectType=SID
        params:
            service_name / service: Service name (overrides database)
            sid: SID (connects through a SID descriptor)
            anything else: passed to oracledb.connect()

    Example:
        adapter = OracleAdapter()
        conn = adapter.connect(ConnectionDescriptor(
            engine=EngineKind.ORACLE, host="db.example.com", port=1521,
            username="scott", password="tiger", database="ORCLPDB1",
        ))
        adapter.query(conn, "SELECT * FROM emp LIMIT 5")
    """

    ENGINE = EngineKind.ORACLE
    PLACEHOLDER = ":n"
    PING_SQL = "SELECT 1 FROM DUAL"
    IDENTIFIER_QUOTE = '"'
    QUERY_KEYWORDS = ("SELECT", "WITH", "DESC", "DESCRIBE", "EXPLAIN")

    DEFAULT_PORT = 1521

    def placeholder(self, position: int) -> str:
        return f":{position + 1}"

    def quote_identifier(self, name: str) -> str:
        return super().quote_identifier(name.upper())

    # ----- lifecycle -----

    def build_dsn(self, descriptor: ConnectionDescriptor) -> str:
        """SID descriptor via makedsn(), otherwise Easy Connect host:port/service."""
        host = descriptor.host or "localhost"
        port = descriptor.port or self.DEFAULT_PORT

        sid = descriptor.param("sid")
        service = descriptor.param("service_name") or descriptor.param("service")
        if not sid and not service:
            if descriptor.param("connectType").upper() == "SID":
                sid = descriptor.database
            else:
                service = descriptor.database

        if sid:
            return oracledb.makedsn(host, port, sid=sid)
        return f"{host}:{port}/{service}"

    def connect(self, descriptor: ConnectionDescriptor) -> Any:
        if not ORACLEDB_AVAILABLE:
            raise driver_missing(self.engine_name, "oracledb")

        dsn = self.build_dsn(descriptor)
        options: Dict[str, Any] = {
            k: v for k, v in descriptor.params.items() if k not in INTERNAL_PARAMS
        }

        logger.info(f"Connecting to Oracle: {descriptor.username}@{dsn}")
        try:
            return oracledb.connect(
                user=descriptor.username,
                password=descriptor.password,
                dsn=dsn,
                **options,
            )
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to Oracle: {e}",
                engine=self.engine_name,
                original_error=e,
            )

    # ----- free-form -----

    def rewrite_query(self, sql: str) -> str:
        rewritten = rewrite_limit(sql)
        if rewritten != sql:
            logger.info(f"[oracle] SQL rewritten: original={sql!r} final={rewritten!r}")
        return rewritten

    def execute(self, handle: Any, sql: str, *args: Any) -> ExecuteResult:
        return super().execute(handle, self.rewrite_query(sql), *args)

    def decode_value(self, value: Any) -> Cell:
        return decode_value(read_lob(value))

    # ----- metadata -----

    def get_databases(self, handle: Any) -> List[str]:
        placeholders = ", ".join("?" for _ in SYSTEM_USERS)
        return self.fetch_values(
            handle,
            f"SELECT USERNAME FROM ALL_USERS WHERE USERNAME NOT IN ({placeholders}) ORDER BY USERNAME",
            SYSTEM_USERS,
        )

    def get_tables(self, handle: Any, database: str) -> List[TableInfo]:
        _, rows = self.fetch_all(
            handle,
            """
            SELECT t.TABLE_NAME, t.NUM_ROWS, c.COMMENTS
            FROM ALL_TABLES t
            LEFT JOIN ALL_TAB_COMMENTS c ON c.OWNER = t.OWNER AND c.TABLE_NAME = t.TABLE_NAME
            WHERE t.OWNER = ?
            ORDER BY t.TABLE_NAME
            """,
            [database.upper()],
        )
        return [
            TableInfo(
                name=name,
                database=database,
                schema=database,
                table_type=TABLE_TYPE_BASE,
                rows=int(num_rows or 0),
                comment=comment or "",
            )
            for name, num_rows, comment in rows
        ]

    def get_table_schema(self, handle: Any, database: str, table: str) -> TableSchema:
        owner, name = database.upper(), table.upper()

        pk_columns = set(
            self.fetch_values(
                handle,
                """
                SELECT cc.COLUMN_NAME
                FROM ALL_CONSTRAINTS c
                JOIN ALL_CONS_COLUMNS cc ON cc.OWNER = c.OWNER AND cc.CONSTRAINT_NAME = c.CONSTRAINT_NAME
                WHERE c.OWNER = ? AND c.TABLE_NAME = ? AND c.CONSTRAINT_TYPE = 'P'
                """,
                [owner, name],
            )
        )

        _, col_rows = self.fetch_all(
            handle,
            """
            SELECT c.COLUMN_NAME, c.DATA_TYPE, c.NULLABLE, c.DATA_DEFAULT,
                   c.DATA_LENGTH, c.DATA_PRECISION, c.DATA_SCALE, m.COMMENTS
            FROM ALL_TAB_COLUMNS c
            LEFT JOIN ALL_COL_COMMENTS m
              ON m.OWNER = c.OWNER AND m.TABLE_NAME = c.TABLE_NAME AND m.COLUMN_NAME = c.COLUMN_NAME
            WHERE c.OWNER = ? AND c.TABLE_NAME = ?
            ORDER BY c.COLUMN_ID
            """,
            [owner, name],
        )
        columns = []
        for col_name, data_type, nullable, default, length, precision, scale, comment in col_rows:
            default = (read_lob(default) or "").strip()
            # Identity columns default to their system sequence ("ISEQ$$_n".nextval)
            identity = "ISEQ$$_" in default.upper()
            columns.append(
                ColumnInfo(
                    name=col_name,
                    type=oracle_type_string(data_type, length, precision, scale),
                    nullable=nullable == "Y",
                    default_value=default if default and not identity else None,
                    key="PRI" if col_name in pk_columns else "",
                    extra="identity" if identity else "",
                    comment=comment or "",
                )
            )

        pk_index = self.fetch_scalar(
            handle,
            """
            SELECT INDEX_NAME FROM ALL_CONSTRAINTS
            WHERE OWNER = ? AND TABLE_NAME = ? AND CONSTRAINT_TYPE = 'P'
            """,
            [owner, name],
        )
        _, idx_rows = self.fetch_all(
            handle,
            """
            SELECT ic.INDEX_NAME, ic.COLUMN_NAME, i.UNIQUENESS, i.INDEX_TYPE
            FROM ALL_IND_COLUMNS ic
            JOIN ALL_INDEXES i ON i.OWNER = ic.INDEX_OWNER AND i.INDEX_NAME = ic.INDEX_NAME
            WHERE ic.TABLE_OWNER = ? AND ic.TABLE_NAME = ?
            ORDER BY ic.INDEX_NAME, ic.COLUMN_POSITION
            """,
            [owner, name],
        )
        indexes = group_index_rows(
            (
                (index_name, column, uniqueness == "UNIQUE", index_name == pk_index, index_type)
                for index_name, column, uniqueness, index_type in idx_rows
            ),
            engine=self.engine_name,
            table=f"{owner}.{name}",
        )

        return TableSchema(database=database, schema=database, table=table, columns=columns, indexes=indexes)

    def get_views(self, handle: Any, database: str) -> List[TableInfo]:
        names = self.fetch_values(
            handle,
            "SELECT VIEW_NAME FROM ALL_VIEWS WHERE OWNER = ? ORDER BY VIEW_NAME",
            [database.upper()],
        )
        return [
            TableInfo(name=name, database=database, schema=database, table_type=TABLE_TYPE_VIEW)
            for name in names
        ]

    def get_procedures(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, ROUTINE_PROCEDURE)

    def get_functions(self, handle: Any, database: str) -> List[RoutineInfo]:
        return self._routines(handle, database, ROUTINE_FUNCTION)

    def _routines(self, handle: Any, database: str, routine_type: str) -> List[RoutineInfo]:
        names = self.fetch_values(
            handle,
            "SELECT OBJECT_NAME FROM ALL_OBJECTS WHERE OWNER = ? AND OBJECT_TYPE = ? ORDER BY OBJECT_NAME",
            [database.upper(), routine_type],
        )
        return [
            RoutineInfo(name=name, routine_type=routine_type, database=database, schema=database)
            for name in names
        ]

    def _get_ddl(self, handle: Any, object_type: str, database: str, name: str) -> str:
        value = self.fetch_scalar(
            handle,
            "SELECT DBMS_METADATA.GET_DDL(?, ?, ?) FROM DUAL",
            [object_type, name.upper(), database.upper()],
        )
        return str(read_lob(value) or "").strip()

    def get_view_definition(self, handle: Any, database: str, view: str) -> str:
        return self._get_ddl(handle, "VIEW", database, view)

    def get_routine_definition(self, handle: Any, database: str, name: str, routine_type: str) -> str:
        object_type = ROUTINE_FUNCTION if routine_type.upper() == ROUTINE_FUNCTION else ROUTINE_PROCEDURE
        return self._get_ddl(handle, object_type, database, name)

    def get_create_table_sql(self, handle: Any, database: str, table: str) -> str:
        return self._get_ddl(handle, "TABLE", database, table)

    # ----- DDL -----

    def format_default(self, value: str) -> str:
        if value.upper() in PASSTHROUGH_DEFAULTS:
            return value.upper()
        # DATA_DEFAULT text is already SQL
        if is_default_expression(value):
            return value.strip()
        return self.quote_string(value)

    def build_column_type(self, column: ColumnDef) -> str:
        base = column.type.strip().upper()
        parts = [
            declared_type(
                column.type,
                length=column.length if base in LENGTH_TYPES else 0,
                precision=column.precision if base in PRECISION_TYPES else 0,
                scale=column.scale,
            )
        ]

        # DEFAULT precedes constraints in Oracle column syntax
        if column.default_value is not None:
            parts.append(f"DEFAULT {self.format_default(column.default_value)}")
        elif column.auto_increment:
            parts.append("GENERATED BY DEFAULT AS IDENTITY")

        if not column.nullable:
            parts.append("NOT NULL")

        return " ".join(parts)

    def build_action_sql(self, request: AlterTableRequest, action: AlterTableAction) -> List[str]:
        q = self.quote_identifier
        ref = self.table_ref(request.database, request.table)

        if isinstance(action, AddColumn):
            return [f"ALTER TABLE {ref} ADD ({q(action.column.name)} {self.build_column_type(action.column)})"]
        if isinstance(action, DropColumn):
            return [f"ALTER TABLE {ref} DROP COLUMN {q(action.name)}"]
        if isinstance(action, ModifyColumn):
            return [f"ALTER TABLE {ref} MODIFY ({q(action.column.name)} {self.build_column_type(action.column)})"]
        if isinstance(action, RenameColumn):
            return [f"ALTER TABLE {ref} RENAME COLUMN {q(action.old_name)} TO {q(action.new_name)}"]
        if isinstance(action, AddIndex):
            index = action.index
            unique = "UNIQUE " if index.unique else ""
            columns = ", ".join(q(c) for c in index.columns)
            return [f"CREATE {unique}INDEX {self.table_ref(request.database, index.name)} ON {ref} ({columns})"]
        if isinstance(action, DropIndex):
            return [f"DROP INDEX {self.table_ref(request.database, action.name)}"]
        raise TypeError(f"unknown alter action: {action!r}")


def oracle_type_string(data_type: str, length: Any, precision: Any, scale: Any) -> str:
    """Rebuild a declared type from ALL_TAB_COLUMNS parts."""
    dt = (data_type or "").upper()
    if dt in ("VARCHAR2", "NVARCHAR2", "CHAR", "RAW") and length:
        return f"{dt}({int(length)})"
    if dt == "NUMBER" and precision:
        if scale:
            return f"NUMBER({int(precision)},{int(scale)})"
        return f"NUMBER({int(precision)})"
    return dt
