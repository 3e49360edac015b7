"""MCP Tools Orchestration Layer.

This module provides a single entry point for all MCP tools. The actual
implementations are organized in the tools package by operational level.

Structure:
- tools/data.py: Row-level operations
- tools/schema.py: Catalog inspection
- tools/database.py: Connection status

Every facade method returns either the tool's success payload or a
structured error payload; none of them raise.
"""

import functools
from typing import Any, Dict, List, Optional

from pgmcp.lib.logging_config import get_logger
from pgmcp.lib import tools
from pgmcp.models.config import redact_secrets
from pgmcp.models.error_types import MCPError, QueryFailureError
from pgmcp.models.tool_responses import ErrorResponse, dump
from pgmcp.services.database_service import DatabaseService


def error_payload(error: Exception) -> Dict[str, Any]:
    """Render any exception as ``{error_kind, message, recoverable, details?}``."""
    if not isinstance(error, MCPError):
        error = QueryFailureError(f"Unexpected error: {error}", recoverable=False)
    payload = error.to_dict()
    payload['message'] = redact_secrets(payload['message'])
    return dump(ErrorResponse(**payload))


def tool_boundary(method):
    """Convert errors raised by a facade method into error payloads."""
    tool_logger = get_logger(__name__, extra_fields={'tool': method.__name__})

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except MCPError as e:
            tool_logger.error(f"MCP error in {method.__name__}: {redact_secrets(e.message)}")
            return error_payload(e)
        except Exception as e:
            tool_logger.exception(f"Unexpected error in {method.__name__}: {redact_secrets(e)}")
            return error_payload(e)

    return wrapper


class ToolFacade:
    """The named operations exposed to MCP clients."""

    def __init__(self, db_service: DatabaseService):
        self.db_service = db_service

    @tool_boundary
    async def query_data(self, table_name: Optional[str] = None,
                         where_conditions: Optional[Dict[str, Any]] = None,
                         limit: Optional[int] = None,
                         query: Optional[str] = None,
                         params: Optional[List[Any]] = None) -> Dict[str, Any]:
        return await tools.query_data(self.db_service, table_name, where_conditions, limit, query, params)

    @tool_boundary
    async def insert_data(self, table_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await tools.insert_data(self.db_service, table_name, data)

    @tool_boundary
    async def update_data(self, table_name: str, values: Dict[str, Any],
                          where_conditions: Dict[str, Any],
                          limit: Optional[int] = None) -> Dict[str, Any]:
        return await tools.update_data(self.db_service, table_name, values, where_conditions, limit)

    @tool_boundary
    async def delete_data(self, table_name: str, where_conditions: Dict[str, Any],
                          limit: Optional[int] = None) -> Dict[str, Any]:
        return await tools.delete_data(self.db_service, table_name, where_conditions, limit)

    @tool_boundary
    async def execute_raw_query(self, query: str, params: Optional[List[Any]] = None) -> Dict[str, Any]:
        return await tools.execute_raw_query(self.db_service, query, params)

    @tool_boundary
    async def list_tables(self, schema: Optional[str] = None) -> Dict[str, Any]:
        return await tools.list_tables(self.db_service, schema)

    @tool_boundary
    async def get_schema(self, table_name: Optional[str] = None,
                         schema: Optional[str] = None) -> Dict[str, Any]:
        return await tools.get_schema(self.db_service, table_name, schema)

    @tool_boundary
    async def describe_table(self, table_name: str, schema: Optional[str] = None) -> Dict[str, Any]:
        return await tools.describe_table(self.db_service, table_name, schema)

    @tool_boundary
    async def table_exists(self, table_name: str) -> Dict[str, Any]:
        return await tools.table_exists(self.db_service, table_name)

    @tool_boundary
    async def column_exists(self, table_name: str, column_name: str) -> Dict[str, Any]:
        return await tools.column_exists(self.db_service, table_name, column_name)

    @tool_boundary
    async def count_rows(self, table_name: str,
                         where_conditions: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await tools.count_rows(self.db_service, table_name, where_conditions)

    @tool_boundary
    async def get_table_sample(self, table_name: str, limit: Optional[int] = None) -> Dict[str, Any]:
        return await tools.get_table_sample(self.db_service, table_name, limit)

    @tool_boundary
    async def get_relationships(self, table_name: Optional[str] = None,
                                schema: Optional[str] = None) -> Dict[str, Any]:
        return await tools.get_relationships(self.db_service, table_name, schema)

    @tool_boundary
    async def get_connection_status(self) -> Dict[str, Any]:
        return await tools.get_connection_status(self.db_service)


__all__ = [
    'ToolFacade',
    'error_payload',
    'tool_boundary'
]
