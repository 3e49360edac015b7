"""Database service for PostgreSQL connections."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

import asyncpg
from asyncpg import exceptions as pg_errors

from pgmcp.lib.logging_config import get_logger
from pgmcp.lib.sql.query_validator import is_read_only_query
from pgmcp.lib.sql.statement_builder import Statement, build_raw
from pgmcp.lib.sql.value_mapper import row_to_dict, to_sql_param, unique_column_names
from pgmcp.models.config import DatabaseConfig, redact_secrets
from pgmcp.models.error_types import (
    ConnectionFailureError,
    LimitExceededError,
    MCPError,
    NotFoundError,
    QueryFailureError,
    TypeMismatchError,
)
from pgmcp.models.query_result import QueryResult, parse_row_count
from pgmcp.utils.logger import log_database_query, log_error_with_context

# Module logger
logger = get_logger(__name__)

# Errors that mean the server or the socket went away
CONNECTION_ERRORS = (
    pg_errors.PostgresConnectionError,
    pg_errors.CannotConnectNowError,
    pg_errors.TooManyConnectionsError,
    pg_errors.ConnectionDoesNotExistError,
    OSError,
)

MAX_ATTEMPTS = 2


def _is_data_error(error: Exception) -> bool:
    """SQLSTATE class 22 (data exception) or 42804 (datatype mismatch)."""
    sqlstate = getattr(error, 'sqlstate', None) or ''
    return sqlstate.startswith('22') or sqlstate == '42804'


class DatabaseService:
    """Service for executing statements on a pooled asyncpg connection."""

    def __init__(self, config: DatabaseConfig, pool_factory: Callable[..., Awaitable[Any]] = None):
        """Initialize database service.

        Args:
            config: Resolved database configuration
            pool_factory: Coroutine creating the pool (defaults to asyncpg.create_pool)
        """
        self.config = config
        self.pool = None
        self._pool_factory = pool_factory or asyncpg.create_pool
        self._connect_lock = asyncio.Lock()

    @property
    def query_timeout(self) -> float:
        return float(self.config.query_timeout)

    async def connect(self) -> bool:
        """Establish database connection pool.

        Returns:
            True if connection successful

        Raises:
            ConnectionFailureError: If connection fails
        """
        async with self._connect_lock:
            if self.is_connected:
                return True
            logger.info(f"Connecting to database: {self.config.host}:{self.config.port}/{self.config.database}")
            try:
                self.pool = await self._pool_factory(**self.config.to_pool_kwargs())
            except (asyncio.TimeoutError, *CONNECTION_ERRORS, pg_errors.PostgresError,
                    pg_errors.InterfaceError) as e:
                log_error_with_context(e, {'host': self.config.host, 'database': self.config.database}, logger)
                raise ConnectionFailureError(f"Failed to connect to database: {redact_secrets(e)}")
            logger.info(f"Database connection pool established (max size: {self.config.pool_max_size})")
            return True

    async def close(self):
        """Close all database connections."""
        if self.pool is not None:
            pool, self.pool = self.pool, None
            await pool.close()
            logger.info("Database connection pool closed")

    @property
    def is_connected(self) -> bool:
        return self.pool is not None

    def pool_status(self) -> Optional[Dict[str, int]]:
        """Current pool occupancy, or None when no pool is open."""
        if self.pool is None:
            return None
        return {
            'size': self.pool.get_size(),
            'idle': self.pool.get_idle_size(),
            'min_size': self.pool.get_min_size(),
            'max_size': self.pool.get_max_size()
        }

    @asynccontextmanager
    async def get_connection(self):
        """Get a connection from the pool.

        Opens the pool on first use when the server started without one.

        Yields:
            asyncpg connection object

        Raises:
            ConnectionFailureError: If no connection available
        """
        if not self.is_connected:
            await self.connect()

        try:
            logger.debug("Getting connection from pool")
            conn = await self.pool.acquire(timeout=self.config.connect_timeout)
        except asyncio.TimeoutError:
            raise ConnectionFailureError("Timed out waiting for a pooled database connection")
        except CONNECTION_ERRORS as e:
            raise ConnectionFailureError(f"Failed to get connection from pool: {redact_secrets(e)}")

        try:
            yield conn
        finally:
            await self.pool.release(conn)

    async def _with_retry(self, work: Callable[[Any], Awaitable[Any]], idempotent: bool,
                          description: str) -> Any:
        """Run ``work(conn)`` on a pooled connection, retrying connection failures once.

        Acquisition failures are always retried; failures after the statement
        was sent are retried only when ``idempotent`` is true.
        """
        attempt = 1
        while True:
            try:
                async with self.get_connection() as conn:
                    return await work(conn)
            except ConnectionFailureError as e:
                retryable = not e.statement_sent or idempotent
                if attempt >= MAX_ATTEMPTS or not retryable:
                    raise
                logger.warning(f"Connection failure during {description}, retrying: {e.message}")
                attempt += 1

    async def _run_statement(self, conn, statement: Statement) -> QueryResult:
        """Prepare, bind, run and convert a single statement on ``conn``."""
        log_database_query(statement.sql, statement.params, logger)
        try:
            prepared = await conn.prepare(statement.sql, timeout=self.query_timeout)
            parameter_types = prepared.get_parameters()
            if len(parameter_types) != len(statement.params):
                raise QueryFailureError(
                    f"Statement expects {len(parameter_types)} parameters but "
                    f"{len(statement.params)} were supplied",
                    recoverable=False
                )
            args = [
                to_sql_param(value, param_type.name, position)
                for position, (value, param_type) in enumerate(zip(statement.params, parameter_types), start=1)
            ]
            records = await prepared.fetch(*args, timeout=self.query_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise self._translate_error(e, statement)

        attributes = prepared.get_attributes()
        columns = unique_column_names([attr.name for attr in attributes])
        rows = [row_to_dict(record, attributes, columns) for record in records]
        status = prepared.get_statusmsg()
        row_count = parse_row_count(status, len(rows))
        logger.debug(f"{statement.kind.value} returned {len(rows)} rows (status: {status})")
        return QueryResult(
            rows=rows,
            row_count=row_count,
            columns=columns,
            status=status
        )

    def _translate_error(self, error: Exception, statement: Statement) -> MCPError:
        """Map a driver or server error to the tool error taxonomy."""
        if isinstance(error, MCPError):
            return error
        target = str(statement.table) if statement.table else None
        message = redact_secrets(error)

        if isinstance(error, pg_errors.UndefinedTableError):
            return NotFoundError(target or 'relation', message)
        if isinstance(error, pg_errors.UndefinedColumnError):
            return NotFoundError(target or 'column', message)
        if isinstance(error, pg_errors.PostgresError) and _is_data_error(error):
            return TypeMismatchError(message)
        if isinstance(error, asyncio.TimeoutError) or isinstance(error, pg_errors.QueryCanceledError):
            logger.warning(f"Query timeout exceeded after {self.query_timeout}s")
            return QueryFailureError(
                f"Query timeout exceeded ({self.query_timeout:g}s). Consider refining your query "
                f"to be more specific or limit the data range.",
                recoverable=True
            )
        if isinstance(error, CONNECTION_ERRORS):
            logger.warning(f"Connection lost while running statement: {message}")
            return ConnectionFailureError(f"Connection lost: {message}", statement_sent=True)
        if isinstance(error, pg_errors.PostgresError):
            logger.error(f"Database error: {message}")
            details = {'sqlstate': error.sqlstate} if getattr(error, 'sqlstate', None) else None
            return QueryFailureError(f"Database error: {message}", recoverable=False, details=details)
        if isinstance(error, (ValueError, TypeError)):
            # client-side encoding failures
            return TypeMismatchError(message)
        if isinstance(error, pg_errors.InterfaceError):
            return QueryFailureError(f"Database error: {message}", recoverable=False)

        log_error_with_context(error, {'query': statement.sql[:100], 'params': len(statement.params)}, logger)
        return QueryFailureError(f"Unexpected error: {message}", recoverable=False)

    async def execute(self, statement: Statement, idempotent: Optional[bool] = None) -> QueryResult:
        """Execute a single statement and return its rows and row count.

        Args:
            statement: Statement to run
            idempotent: Whether a mid-statement connection failure may be retried
                (defaults to whether the statement kind is read-only)

        Raises:
            MCPError: If execution fails
        """
        if idempotent is None:
            idempotent = statement.kind.is_read_only

        async def work(conn):
            return await self._run_statement(conn, statement)

        return await self._with_retry(work, idempotent, statement.kind.value)

    async def fetch_value(self, statement: Statement) -> Any:
        """Return the first column of the first row (COUNT and EXISTS lookups)."""
        result = await self.execute(statement)
        return result.scalar()

    async def fetch_rows(self, statement: Statement) -> List[Dict[str, Any]]:
        result = await self.execute(statement)
        return result.rows

    async def execute_guarded(self, statement: Statement, guard: Statement, limit: int) -> QueryResult:
        """Run a mutation only if its COUNT guard matches at most ``limit`` rows.

        Both statements run on the same connection, guard first. When the
        guard exceeds the limit nothing is executed.

        Raises:
            LimitExceededError: If the guard count is greater than ``limit``
        """

        async def work(conn):
            guard_result = await self._run_statement(conn, guard)
            matched = int(guard_result.scalar() or 0)
            if matched > limit:
                logger.warning(
                    f"Refusing {statement.kind.value} on {statement.table}: "
                    f"{matched} rows match, limit is {limit}"
                )
                raise LimitExceededError(str(statement.table), matched, limit)
            return await self._run_statement(conn, statement)

        # the mutation itself is never replayed after it was sent
        return await self._with_retry(work, False, statement.kind.value)

    async def execute_raw(self, query: str, params: Optional[List[Any]] = None) -> QueryResult:
        """Execute caller-supplied SQL with positional parameters.

        No identifier validation and no row limit; only read-only queries
        are retried after a mid-statement connection failure.
        """
        statement = build_raw(query, params)
        return await self.execute(statement, idempotent=is_read_only_query(statement.sql))
