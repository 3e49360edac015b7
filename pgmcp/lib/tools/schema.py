"""Schema-level MCP tools for PostgreSQL operations.

This module contains tools that inspect the catalog: tables, columns,
constraints, indexes and foreign-key relationships. Every query is fixed
text parameterized only by validated schema, table and column names.
"""

from typing import Any, Dict, Optional

from pgmcp.lib.logging_config import get_logger
from pgmcp.lib.sql.statement_builder import introspection
from pgmcp.models.error_types import MissingRequiredFieldError, NotFoundError
from pgmcp.services.database_service import DatabaseService
from pgmcp.models.tool_responses import ExistsResponse, RowsResponse, TableDescription, dump
from pgmcp.services.query_utils import (
    DEFAULT_SCHEMA,
    TableRef,
    fold_identifier,
    require_column_name,
    require_schema_name,
)

logger = get_logger(__name__)

LIST_TABLES_QUERY = """
    SELECT
        schemaname AS schema_name,
        tablename AS table_name,
        tableowner AS owner
    FROM pg_catalog.pg_tables
    WHERE schemaname = $1::text
    ORDER BY tablename
"""

COLUMNS_QUERY = """
    SELECT
        table_name,
        column_name,
        data_type,
        is_nullable,
        column_default,
        character_maximum_length,
        ordinal_position
    FROM information_schema.columns
    WHERE table_schema = $1::text
      AND ($2::text IS NULL OR table_name = $2::text)
    ORDER BY table_name, ordinal_position
"""

CONSTRAINTS_QUERY = """
    SELECT
        con.conname AS constraint_name,
        CASE con.contype
            WHEN 'p' THEN 'PRIMARY KEY'
            WHEN 'f' THEN 'FOREIGN KEY'
            WHEN 'u' THEN 'UNIQUE'
            WHEN 'c' THEN 'CHECK'
            WHEN 'x' THEN 'EXCLUDE'
            ELSE con.contype::text
        END AS constraint_type,
        pg_catalog.pg_get_constraintdef(con.oid, true) AS definition
    FROM pg_catalog.pg_constraint con
    JOIN pg_catalog.pg_class rel ON rel.oid = con.conrelid
    JOIN pg_catalog.pg_namespace ns ON ns.oid = rel.relnamespace
    WHERE ns.nspname = $1::text
      AND rel.relname = $2::text
    ORDER BY con.conname
"""

INDEXES_QUERY = """
    SELECT
        indexname AS index_name,
        indexdef AS definition
    FROM pg_catalog.pg_indexes
    WHERE schemaname = $1::text
      AND tablename = $2::text
    ORDER BY indexname
"""

TABLE_EXISTS_QUERY = """
    SELECT EXISTS (
        SELECT 1 FROM pg_catalog.pg_tables
        WHERE schemaname = $1::text AND tablename = $2::text
    )
"""

COLUMN_EXISTS_QUERY = """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.columns
        WHERE table_schema = $1::text
          AND table_name = $2::text
          AND column_name = $3::text
    )
"""

# One row per column pair of every foreign key touching the schema, or
# touching schema.table on either side when a table is given
RELATIONSHIPS_QUERY = """
    SELECT
        con.conname AS constraint_name,
        src_ns.nspname AS table_schema,
        src.relname AS table_name,
        src_att.attname AS column_name,
        tgt_ns.nspname AS foreign_table_schema,
        tgt.relname AS foreign_table_name,
        tgt_att.attname AS foreign_column_name
    FROM pg_catalog.pg_constraint con
    JOIN pg_catalog.pg_class src ON src.oid = con.conrelid
    JOIN pg_catalog.pg_namespace src_ns ON src_ns.oid = src.relnamespace
    JOIN pg_catalog.pg_class tgt ON tgt.oid = con.confrelid
    JOIN pg_catalog.pg_namespace tgt_ns ON tgt_ns.oid = tgt.relnamespace
    CROSS JOIN LATERAL unnest(con.conkey, con.confkey) WITH ORDINALITY AS cols(src_attnum, tgt_attnum, ord)
    JOIN pg_catalog.pg_attribute src_att
        ON src_att.attrelid = con.conrelid AND src_att.attnum = cols.src_attnum
    JOIN pg_catalog.pg_attribute tgt_att
        ON tgt_att.attrelid = con.confrelid AND tgt_att.attnum = cols.tgt_attnum
    WHERE con.contype = 'f'
      AND (
          ($2::text IS NULL AND (src_ns.nspname = $1::text OR tgt_ns.nspname = $1::text))
          OR (src_ns.nspname = $1::text AND src.relname = $2::text)
          OR (tgt_ns.nspname = $1::text AND tgt.relname = $2::text)
      )
    ORDER BY src.relname, con.conname, cols.ord
"""


def _schema_or_default(schema: Optional[str]) -> str:
    if schema is None:
        return DEFAULT_SCHEMA
    return fold_identifier(require_schema_name(schema))


def _require_table(table_name: Any, schema: Optional[str] = None) -> TableRef:
    if table_name is None or (isinstance(table_name, str) and not table_name.strip()):
        raise MissingRequiredFieldError('table_name')
    return TableRef.parse(table_name, schema)


async def list_tables(db_service: DatabaseService, schema: Optional[str] = None) -> Dict[str, Any]:
    """List the ordinary tables of a schema (default ``public``)."""
    schema_name = _schema_or_default(schema)
    rows = await db_service.fetch_rows(introspection(LIST_TABLES_QUERY, schema_name))
    return dump(RowsResponse(schema_name=schema_name, rows=rows, row_count=len(rows)))


async def get_schema(db_service: DatabaseService,
                     table_name: Optional[str] = None,
                     schema: Optional[str] = None) -> Dict[str, Any]:
    """List columns with type, nullability, default and position.

    Args:
        db_service: Database service instance
        table_name: Restrict the listing to one table
        schema: Schema to inspect (default ``public``)
    """
    table = None
    if table_name is not None:
        table = _require_table(table_name, schema)
        schema_name = table.schema_name
    else:
        schema_name = _schema_or_default(schema)

    rows = await db_service.fetch_rows(
        introspection(COLUMNS_QUERY, schema_name, table.name if table else None)
    )
    return dump(RowsResponse(
        schema_name=schema_name,
        table_name=table.name if table else None,
        rows=rows,
        row_count=len(rows)
    ))


async def describe_table(db_service: DatabaseService,
                         table_name: str,
                         schema: Optional[str] = None) -> Dict[str, Any]:
    """Describe a table's columns, constraints and indexes.

    Raises:
        NotFoundError: If the table has no visible columns
    """
    table = _require_table(table_name, schema)
    columns = await db_service.fetch_rows(introspection(COLUMNS_QUERY, table.schema_name, table.name))
    if not columns:
        raise NotFoundError(str(table), f"Table '{table.schema_name}.{table.name}' does not exist")

    for column in columns:
        column.pop('table_name', None)

    constraints = await db_service.fetch_rows(introspection(CONSTRAINTS_QUERY, table.schema_name, table.name))
    indexes = await db_service.fetch_rows(introspection(INDEXES_QUERY, table.schema_name, table.name))

    return dump(TableDescription(
        table_name=table.name,
        schema_name=table.schema_name,
        columns=columns,
        constraints=constraints,
        indexes=indexes
    ))


async def table_exists(db_service: DatabaseService, table_name: str) -> Dict[str, Any]:
    table = _require_table(table_name)
    exists = await db_service.fetch_value(introspection(TABLE_EXISTS_QUERY, table.schema_name, table.name))
    return dump(ExistsResponse(table_name=str(table), exists=bool(exists)))


async def column_exists(db_service: DatabaseService, table_name: str, column_name: str) -> Dict[str, Any]:
    table = _require_table(table_name)
    if column_name is None or column_name == '':
        raise MissingRequiredFieldError('column_name')
    column = fold_identifier(require_column_name(column_name))
    exists = await db_service.fetch_value(
        introspection(COLUMN_EXISTS_QUERY, table.schema_name, table.name, column)
    )
    return dump(ExistsResponse(table_name=str(table), column_name=column, exists=bool(exists)))


async def get_relationships(db_service: DatabaseService,
                            table_name: Optional[str] = None,
                            schema: Optional[str] = None) -> Dict[str, Any]:
    """List foreign-key column pairs, optionally those touching one table.

    When a table is given each row carries a ``direction``: ``outgoing``
    when the table holds the foreign key, ``incoming`` when it is referenced.
    """
    table = None
    if table_name is not None:
        table = _require_table(table_name, schema)
        schema_name = table.schema_name
    else:
        schema_name = _schema_or_default(schema)

    rows = await db_service.fetch_rows(
        introspection(RELATIONSHIPS_QUERY, schema_name, table.name if table else None)
    )

    if table:
        for row in rows:
            is_source = row['table_name'] == table.name and row['table_schema'] == schema_name
            row['direction'] = 'outgoing' if is_source else 'incoming'

    return dump(RowsResponse(
        schema_name=schema_name,
        table_name=table.name if table else None,
        rows=rows,
        row_count=len(rows)
    ))
