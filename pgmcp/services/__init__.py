"""Business logic services for PostgreSQL MCP Server.

``database_service`` is imported directly by its callers; it depends on
the SQL builders, which depend on ``query_utils``.
"""

from .query_utils import TableRef, validate_table_name, validate_column_name

__all__ = [
    'TableRef',
    'validate_table_name',
    'validate_column_name'
]
