"""Data-level MCP tools for PostgreSQL operations.

This module contains the tools that read and modify table rows: structured
queries, inserts, bounded updates and deletes, counts, samples and raw SQL.
"""

from typing import Any, Dict, List, Optional

from pgmcp.lib.logging_config import get_logger
from pgmcp.lib.sql.conditions import ensure_mapping
from pgmcp.lib.sql.statement_builder import (
    build_count,
    build_delete,
    build_insert,
    build_sample,
    build_select,
    build_update,
)
from pgmcp.models.error_types import MissingRequiredFieldError, TypeMismatchError
from pgmcp.models.tool_responses import CountResponse, MutationResponse, RowsResponse, dump
from pgmcp.services.database_service import DatabaseService
from pgmcp.services.query_utils import TableRef

logger = get_logger(__name__)

DEFAULT_SAMPLE_SIZE = 10
MAX_SAMPLE_SIZE = 100
MAX_QUERY_LIMIT = 1000


def _require_table(table_name: Any, schema: Optional[str] = None) -> TableRef:
    if table_name is None or (isinstance(table_name, str) and not table_name.strip()):
        raise MissingRequiredFieldError('table_name')
    return TableRef.parse(table_name, schema)


def _as_int(value: Any, field: str) -> int:
    """Accept integers and integral numbers; booleans and text are rejected."""
    if isinstance(value, bool):
        raise TypeMismatchError(f"'{field}' must be an integer, got boolean", value, 'int')
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise TypeMismatchError(f"'{field}' must be an integer, got {type(value).__name__}", value, 'int')


def clamp_limit(value: Any, default: Optional[int], lower: int, upper: int) -> Optional[int]:
    """Clamp a caller-supplied row limit into ``[lower, upper]``.

    Returns ``default`` when no limit was supplied.
    """
    if value is None:
        return default
    return max(lower, min(_as_int(value, 'limit'), upper))


def mutation_limit(db_service: DatabaseService, value: Any) -> int:
    """Resolve the update/delete safety limit; 0 refuses any matching row."""
    if value is None:
        return db_service.config.mutation_limit
    limit = _as_int(value, 'limit')
    if limit < 0:
        raise TypeMismatchError(f"'limit' must be non-negative, got {limit}", value, 'int')
    return limit


async def query_data(db_service: DatabaseService,
                     table_name: Optional[str] = None,
                     where_conditions: Optional[Dict[str, Any]] = None,
                     limit: Optional[int] = None,
                     query: Optional[str] = None,
                     params: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Read rows, either from SQL text or from a table with equality filters.

    Args:
        db_service: Database service instance
        table_name: Table to read when no query is given
        where_conditions: Column-to-value equality filters
        limit: Maximum rows to return (clamped to 1..1000)
        query: Raw SQL; when given the table arguments are ignored
        params: Positional parameters for ``query``

    Returns:
        Dictionary containing rows, row_count and columns
    """
    if query is not None:
        result = await db_service.execute_raw(query, params)
        return dump(RowsResponse(rows=result.rows, row_count=result.row_count, columns=result.columns))

    table = _require_table(table_name)
    conditions = ensure_mapping(where_conditions, 'where_conditions')
    row_limit = clamp_limit(limit, None, 1, MAX_QUERY_LIMIT)

    result = await db_service.execute(build_select(table, conditions, row_limit))
    return dump(RowsResponse(
        table_name=str(table),
        rows=result.rows,
        row_count=result.row_count,
        columns=result.columns,
        limit_applied=row_limit
    ))


async def insert_data(db_service: DatabaseService,
                      table_name: str,
                      data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert one row and return it as stored, including generated columns."""
    table = _require_table(table_name)
    statement = build_insert(table, data)

    result = await db_service.execute(statement)
    logger.info(f"Inserted {result.row_count} row(s) into {table}")
    return dump(RowsResponse(table_name=str(table), rows=result.rows, row_count=result.row_count))


async def update_data(db_service: DatabaseService,
                      table_name: str,
                      values: Dict[str, Any],
                      where_conditions: Dict[str, Any],
                      limit: Optional[int] = None) -> Dict[str, Any]:
    """Update matching rows unless more than ``limit`` rows match.

    Raises:
        MissingRequiredFieldError: If values or where_conditions is empty
        LimitExceededError: If the match count exceeds the limit; nothing is changed
    """
    table = _require_table(table_name)
    statement = build_update(table, values, where_conditions)
    guard = build_count(table, where_conditions)
    row_limit = mutation_limit(db_service, limit)

    result = await db_service.execute_guarded(statement, guard, row_limit)
    logger.info(f"Updated {result.row_count} row(s) in {table}")
    return dump(MutationResponse(table_name=str(table), row_count=result.row_count, limit=row_limit))


async def delete_data(db_service: DatabaseService,
                      table_name: str,
                      where_conditions: Dict[str, Any],
                      limit: Optional[int] = None) -> Dict[str, Any]:
    """Delete matching rows unless more than ``limit`` rows match."""
    table = _require_table(table_name)
    statement = build_delete(table, where_conditions)
    guard = build_count(table, where_conditions)
    row_limit = mutation_limit(db_service, limit)

    result = await db_service.execute_guarded(statement, guard, row_limit)
    logger.info(f"Deleted {result.row_count} row(s) from {table}")
    return dump(MutationResponse(table_name=str(table), row_count=result.row_count, limit=row_limit))


async def execute_raw_query(db_service: DatabaseService,
                            query: str,
                            params: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Run caller SQL as-is with positional ``$n`` parameters.

    No row limit and no identifier validation apply.
    """
    result = await db_service.execute_raw(query, params)
    return dump(RowsResponse(
        rows=result.rows,
        row_count=result.row_count,
        columns=result.columns,
        status=result.status
    ))


async def count_rows(db_service: DatabaseService,
                     table_name: str,
                     where_conditions: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    table = _require_table(table_name)
    conditions = ensure_mapping(where_conditions, 'where_conditions')
    count = await db_service.fetch_value(build_count(table, conditions))
    return dump(CountResponse(table_name=str(table), count=int(count or 0)))


async def get_table_sample(db_service: DatabaseService,
                           table_name: str,
                           limit: Optional[int] = None) -> Dict[str, Any]:
    """Return up to ``limit`` rows (default 10, at most 100)."""
    table = _require_table(table_name)
    row_limit = clamp_limit(limit, DEFAULT_SAMPLE_SIZE, 1, MAX_SAMPLE_SIZE)

    result = await db_service.execute(build_sample(table, row_limit))
    return dump(RowsResponse(
        table_name=str(table),
        rows=result.rows,
        row_count=result.row_count,
        limit=row_limit
    ))
