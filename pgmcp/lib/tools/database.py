"""Database-level MCP tools for PostgreSQL operations.

This module reports on the connection itself: whether the server answers,
who we are connected as, and how busy the pool is.
"""

from typing import Any, Dict

from pgmcp.lib.logging_config import get_logger
from pgmcp.lib.sql.statement_builder import introspection
from pgmcp.models.error_types import MCPError
from pgmcp.models.tool_responses import ConnectionStatusResponse, PoolStatus, dump
from pgmcp.services.database_service import DatabaseService

logger = get_logger(__name__)

CONNECTION_STATUS_QUERY = """
    SELECT
        version() AS version,
        current_database() AS database,
        current_user AS user_name
"""


async def get_connection_status(db_service: DatabaseService) -> Dict[str, Any]:
    """Round-trip a trivial query and report connection details.

    Connection problems are reported in the payload with ``connected``
    false rather than raised.
    """
    config = db_service.config
    try:
        rows = await db_service.fetch_rows(introspection(CONNECTION_STATUS_QUERY))
    except MCPError as e:
        logger.warning(f"Connection status check failed: {e.message}")
        return dump(ConnectionStatusResponse(
            connected=False,
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.user,
            error_kind=e.error_kind,
            message=e.message
        ))

    info = rows[0] if rows else {}
    pool = db_service.pool_status()
    return dump(ConnectionStatusResponse(
        connected=True,
        host=config.host,
        port=config.port,
        database=info.get('database') or config.database,
        user=info.get('user_name') or config.user,
        version=info.get('version'),
        pool=PoolStatus(**pool) if pool else None
    ))
