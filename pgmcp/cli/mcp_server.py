"""MCP server entry point for PostgreSQL operations."""

import os
import sys
import argparse
import signal
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from pgmcp.lib.logging_config import setup_logging, get_logger
from pgmcp.lib.mcp_tools import ToolFacade
from pgmcp.models.config import DatabaseConfig
from pgmcp.models.error_types import MCPError
from pgmcp.services.database_service import DatabaseService

logger = get_logger(__name__)

# Global service instances, created in main()
db_service: Optional[DatabaseService] = None
facade: Optional[ToolFacade] = None


def initialize_database(connection_string: Optional[str] = None,
                        profile_name: Optional[str] = None) -> ToolFacade:
    """Build the configuration, database service and tool facade."""
    global db_service, facade
    config = DatabaseConfig(connection_string=connection_string, profile_name=profile_name)
    logger.info(f"Database configuration loaded: {config.describe()}")
    db_service = DatabaseService(config)
    facade = ToolFacade(db_service)
    return facade


def get_facade() -> ToolFacade:
    if facade is None:
        initialize_database()
    return facade


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Open the connection pool for the server's lifetime.

    A database that is down at startup does not stop the server; the pool
    is opened on the first tool call instead.
    """
    service = get_facade().db_service
    try:
        await service.connect()
    except MCPError as e:
        logger.error(f"Database unavailable at startup: {e.message}")
    try:
        yield
    finally:
        await service.close()


# Initialize MCP server
mcp = FastMCP("PostgreSQL MCP Server", lifespan=lifespan)


@mcp.tool()
async def query_data(table_name: Optional[str] = None,
                     where_conditions: Optional[Dict[str, Any]] = None,
                     limit: Optional[int] = None,
                     query: Optional[str] = None,
                     params: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Read rows from a table, or run a SELECT given as SQL text.

    Args:
        table_name: Table to read (optionally schema-qualified, e.g. sales.orders)
        where_conditions: Equality filters as {column: value}
        limit: Maximum rows to return (1-1000)
        query: SQL text to run instead of the table arguments
        params: Positional parameters for $1, $2, ... in query

    Returns:
        Dictionary containing rows, row_count and columns
    """
    return await get_facade().query_data(table_name, where_conditions, limit, query, params)


@mcp.tool()
async def insert_data(table_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert one row and return it, including generated values such as ids.

    Args:
        table_name: Target table
        data: Column values as {column: value}
    """
    return await get_facade().insert_data(table_name, data)


@mcp.tool()
async def update_data(table_name: str,
                      values: Dict[str, Any],
                      where_conditions: Dict[str, Any],
                      limit: Optional[int] = None) -> Dict[str, Any]:
    """Update rows matching every condition.

    Refuses without changing anything when more rows match than the safety
    limit (default 1000).

    Args:
        table_name: Target table
        values: New column values as {column: value}
        where_conditions: Equality filters, at least one required
        limit: Safety limit override
    """
    return await get_facade().update_data(table_name, values, where_conditions, limit)


@mcp.tool()
async def delete_data(table_name: str,
                      where_conditions: Dict[str, Any],
                      limit: Optional[int] = None) -> Dict[str, Any]:
    """Delete rows matching every condition, bounded by the safety limit.

    Args:
        table_name: Target table
        where_conditions: Equality filters, at least one required
        limit: Safety limit override
    """
    return await get_facade().delete_data(table_name, where_conditions, limit)


@mcp.tool()
async def execute_raw_query(query: str, params: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Execute one SQL statement as written, with $n positional parameters.

    No row limit applies. Use the structured tools where possible.
    """
    return await get_facade().execute_raw_query(query, params)


@mcp.tool()
async def list_tables(schema: Optional[str] = None) -> Dict[str, Any]:
    """List tables in a schema (default: public)."""
    return await get_facade().list_tables(schema)


@mcp.tool()
async def get_schema(table_name: Optional[str] = None, schema: Optional[str] = None) -> Dict[str, Any]:
    """List columns with their types, nullability and defaults.

    Args:
        table_name: Restrict to one table
        schema: Schema to inspect (default: public)
    """
    return await get_facade().get_schema(table_name, schema)


@mcp.tool()
async def describe_table(table_name: str, schema: Optional[str] = None) -> Dict[str, Any]:
    """Describe a table: columns, constraints and indexes."""
    return await get_facade().describe_table(table_name, schema)


@mcp.tool()
async def table_exists(table_name: str) -> Dict[str, Any]:
    """Check whether a table exists."""
    return await get_facade().table_exists(table_name)


@mcp.tool()
async def column_exists(table_name: str, column_name: str) -> Dict[str, Any]:
    """Check whether a column exists in a table."""
    return await get_facade().column_exists(table_name, column_name)


@mcp.tool()
async def count_rows(table_name: str, where_conditions: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Count rows, optionally only those matching equality filters."""
    return await get_facade().count_rows(table_name, where_conditions)


@mcp.tool()
async def get_table_sample(table_name: str, limit: Optional[int] = None) -> Dict[str, Any]:
    """Return a few rows from a table (default 10, at most 100)."""
    return await get_facade().get_table_sample(table_name, limit)


@mcp.tool()
async def get_relationships(table_name: Optional[str] = None, schema: Optional[str] = None) -> Dict[str, Any]:
    """List foreign-key relationships, optionally those touching one table.

    Each row names the source table and column and the referenced table and
    column. With a table_name, rows are marked outgoing or incoming.
    """
    return await get_facade().get_relationships(table_name, schema)


@mcp.tool()
async def get_connection_status() -> Dict[str, Any]:
    """Report whether the database is reachable, with server version and pool usage."""
    return await get_facade().get_connection_status()


def shutdown_handler(signum, frame):
    """Handle shutdown signals gracefully.

    Args:
        signum: Signal number
        frame: Current stack frame
    """
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    sys.exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PostgreSQL MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport mode: stdio (default) or sse"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host for SSE server (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for SSE server (default: 3000)"
    )
    parser.add_argument(
        "--db-config",
        default=None,
        help="PostgreSQL connection string (overrides environment and profiles)"
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Database profile name from DATABASES_CONFIG"
    )
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the MCP server."""
    args = build_parser().parse_args(argv)

    # Setup structured logging
    setup_logging(
        level=os.getenv('LOG_LEVEL', 'INFO'),
        json_format=os.getenv('LOG_JSON', 'false').lower() == 'true',
        log_file=os.getenv('LOG_FILE')
    )

    # Set up signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        initialize_database(args.db_config, args.profile)
    except ValueError as e:
        logger.error(f"Invalid database configuration: {e}")
        sys.exit(1)

    try:
        if args.transport == "stdio":
            logger.info("Starting PostgreSQL MCP Server in stdio mode...")
            mcp.run(transport="stdio")
        else:  # sse
            logger.info(f"Starting PostgreSQL MCP Server in SSE mode on {args.host}:{args.port}")
            mcp.run(
                transport="sse",
                host=args.host,
                port=args.port
            )
    except KeyboardInterrupt:
        logger.info("Server shutdown requested via keyboard interrupt")
    finally:
        logger.info("Server stopped")


if __name__ == "__main__":
    main()
