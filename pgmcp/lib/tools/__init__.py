"""MCP Tools Package - Modular tool implementations for PostgreSQL operations.

This package provides a modular architecture for MCP tools, organized by
operational level. Each module contains focused tools for its specific domain.

Structure:
- data.py: Row-level operations (query, insert, update, delete, count, sample)
- schema.py: Catalog inspection (tables, columns, constraints, relationships)
- database.py: Connection status
"""

# Row-level tools
from .data import (
    query_data,
    insert_data,
    update_data,
    delete_data,
    execute_raw_query,
    count_rows,
    get_table_sample
)

# Catalog tools
from .schema import (
    list_tables,
    get_schema,
    describe_table,
    table_exists,
    column_exists,
    get_relationships
)

# Database-level tools
from .database import (
    get_connection_status
)

__all__ = [
    # Row-level tools
    'query_data',
    'insert_data',
    'update_data',
    'delete_data',
    'execute_raw_query',
    'count_rows',
    'get_table_sample',
    # Catalog tools
    'list_tables',
    'get_schema',
    'describe_table',
    'table_exists',
    'column_exists',
    'get_relationships',
    # Database tools
    'get_connection_status'
]
