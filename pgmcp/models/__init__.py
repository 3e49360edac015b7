"""Data models for PostgreSQL MCP Server."""

from .config import DatabaseConfig
from .error_types import (
    MCPError,
    InvalidIdentifierError,
    MissingRequiredFieldError,
    TypeMismatchError,
    LimitExceededError,
    ConnectionFailureError,
    QueryFailureError,
    NotFoundError
)
from .query_result import QueryResult

__all__ = [
    'DatabaseConfig',
    'MCPError',
    'InvalidIdentifierError',
    'MissingRequiredFieldError',
    'TypeMismatchError',
    'LimitExceededError',
    'ConnectionFailureError',
    'QueryFailureError',
    'NotFoundError',
    'QueryResult'
]
