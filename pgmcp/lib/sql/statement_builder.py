"""SQL statement builders, one per operation kind.

Identifiers are validated before any SQL text is assembled; values are
never interpolated and always travel as positional parameters.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional

from pgmcp.lib.sql.conditions import build_assignments, build_where_clause, ensure_mapping
from pgmcp.models.error_types import MissingRequiredFieldError
from pgmcp.services.query_utils import TableRef, require_column_name


class OperationKind(str, Enum):
    """Closed set of statements the server can issue."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    COUNT = "count"
    SAMPLE = "sample"
    INTROSPECT = "introspect"
    RAW = "raw"

    @property
    def is_read_only(self) -> bool:
        return self in (OperationKind.SELECT, OperationKind.COUNT,
                        OperationKind.SAMPLE, OperationKind.INTROSPECT)


@dataclass
class Statement:
    """SQL text plus its positional parameters."""

    kind: OperationKind
    sql: str
    params: List[Any] = field(default_factory=list)
    table: Optional[TableRef] = None


def build_select(table: TableRef,
                 conditions: Optional[Mapping[str, Any]] = None,
                 limit: Optional[int] = None) -> Statement:
    """SELECT * FROM <table> [WHERE ...] [LIMIT n]."""
    where, params = build_where_clause(conditions)
    sql = f"SELECT * FROM {table.sql}"
    if where:
        sql += f" {where}"
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return Statement(OperationKind.SELECT, sql, params, table)


def build_sample(table: TableRef, limit: int) -> Statement:
    """Bounded SELECT; the LIMIT clause is always present."""
    statement = build_select(table, limit=limit)
    statement.kind = OperationKind.SAMPLE
    return statement


def build_count(table: TableRef, conditions: Optional[Mapping[str, Any]] = None) -> Statement:
    """SELECT COUNT(*) FROM <table> [WHERE ...]."""
    where, params = build_where_clause(conditions)
    sql = f"SELECT COUNT(*) FROM {table.sql}"
    if where:
        sql += f" {where}"
    return Statement(OperationKind.COUNT, sql, params, table)


def build_insert(table: TableRef, data: Mapping[str, Any]) -> Statement:
    """INSERT INTO <table> (cols...) VALUES ($1, ...) RETURNING *."""
    data = ensure_mapping(data, 'data', allow_empty=False)
    columns = [require_column_name(column) for column in data]
    placeholders = ", ".join(f"${index}" for index in range(1, len(columns) + 1))
    sql = f"INSERT INTO {table.sql} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *"
    return Statement(OperationKind.INSERT, sql, list(data.values()), table)


def build_update(table: TableRef,
                 values: Mapping[str, Any],
                 conditions: Mapping[str, Any]) -> Statement:
    """UPDATE <table> SET col = $1, ... WHERE ...

    SET placeholders are numbered before the WHERE placeholders.
    """
    values = ensure_mapping(values, 'values', allow_empty=False)
    conditions = ensure_mapping(conditions, 'where_conditions', allow_empty=False)
    assignments, set_params = build_assignments(values)
    where, where_params = build_where_clause(conditions, start_index=len(set_params) + 1)
    sql = f"UPDATE {table.sql} SET {assignments} {where}"
    return Statement(OperationKind.UPDATE, sql, set_params + where_params, table)


def build_delete(table: TableRef, conditions: Mapping[str, Any]) -> Statement:
    """DELETE FROM <table> WHERE ..."""
    conditions = ensure_mapping(conditions, 'where_conditions', allow_empty=False)
    where, params = build_where_clause(conditions)
    return Statement(OperationKind.DELETE, f"DELETE FROM {table.sql} {where}", params, table)


def build_raw(query: Any, params: Optional[List[Any]] = None) -> Statement:
    """Wrap caller SQL; only emptiness is checked."""
    if not isinstance(query, str) or not query.strip():
        raise MissingRequiredFieldError('query')
    if params is not None and not isinstance(params, list):
        raise MissingRequiredFieldError('params', "'params' must be a JSON array")
    return Statement(OperationKind.RAW, query, list(params or []))


def introspection(sql: str, *params: Any) -> Statement:
    """Wrap a fixed catalog query parameterized only by names."""
    return Statement(OperationKind.INTROSPECT, sql, list(params))
