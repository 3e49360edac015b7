"""Logging helpers for database activity."""

import logging
from typing import Any, Optional, Sequence

from pgmcp.lib.logging_config import get_logger
from pgmcp.models.config import redact_secrets

logger = get_logger("pgmcp")

MAX_LOGGED_QUERY_LENGTH = 500


def log_database_query(query: str, params: Optional[Sequence[Any]] = None,
                       logger_instance: Optional[logging.Logger] = None):
    """Log database queries for debugging.

    Parameter values are not logged, only their count.

    Args:
        query: SQL query string
        params: Query parameters
        logger_instance: Logger to use (defaults to the package logger)
    """
    if logger_instance is None:
        logger_instance = logger

    # Truncate very long queries
    display_query = query[:MAX_LOGGED_QUERY_LENGTH] + "..." if len(query) > MAX_LOGGED_QUERY_LENGTH else query
    display_query = ' '.join(display_query.split())  # Normalize whitespace

    if params:
        logger_instance.debug(f"SQL Query: {display_query} | Params: {len(params)}")
    else:
        logger_instance.debug(f"SQL Query: {display_query}")


def log_error_with_context(error: Exception, context: dict,
                           logger_instance: Optional[logging.Logger] = None):
    """Log an error with additional context information.

    Args:
        error: Exception that occurred
        context: Dictionary with context information
        logger_instance: Logger to use (defaults to the package logger)
    """
    if logger_instance is None:
        logger_instance = logger

    logger_instance.error(
        redact_secrets(f"{error.__class__.__name__}: {error} | Context: {context}"),
        exc_info=True
    )


__all__ = [
    'logger',
    'log_database_query',
    'log_error_with_context'
]
