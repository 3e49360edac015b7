"""Pydantic models for MCP tool responses.

This module defines the payloads returned by the tools so that every
success and error response has a consistent, validated shape.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict


# ============================================================================
# Row-returning responses
# ============================================================================

class RowsResponse(BaseModel):
    """Rows plus their count, as returned by query and introspection tools."""

    rows: List[Dict[str, Any]] = Field(default_factory=list, description="Result rows")
    row_count: int = Field(..., ge=0, description="Number of rows returned or affected")
    columns: Optional[List[str]] = Field(None, description="Result column names in order")
    table_name: Optional[str] = Field(None, description="Table the statement targeted")
    schema_name: Optional[str] = Field(None, alias="schema", description="Schema used for catalog lookups")
    status: Optional[str] = Field(None, description="Command status reported by the server")
    limit: Optional[int] = Field(None, ge=0, description="Row limit that was applied")
    limit_applied: Optional[int] = Field(None, ge=1, description="Clamped LIMIT of a structured query")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "rows": [{"id": 1, "username": "alice", "active": True}],
                "row_count": 1,
                "columns": ["id", "username", "active"]
            }
        }
    )


class MutationResponse(BaseModel):
    """Response for update_data and delete_data."""

    table_name: str = Field(..., description="Table that was modified")
    row_count: int = Field(..., ge=0, description="Number of rows affected")
    limit: int = Field(..., ge=0, description="Safety limit that was enforced")


class CountResponse(BaseModel):
    """Response for count_rows."""

    table_name: str = Field(..., description="Counted table")
    count: int = Field(..., ge=0, description="Number of matching rows")


class ExistsResponse(BaseModel):
    """Response for table_exists and column_exists."""

    table_name: str = Field(..., description="Table that was looked up")
    column_name: Optional[str] = Field(None, description="Column that was looked up")
    exists: bool = Field(..., description="Whether the object exists")


class TableDescription(BaseModel):
    """Response for describe_table."""

    table_name: str
    schema_name: str = Field(..., alias="schema")
    columns: List[Dict[str, Any]]
    constraints: List[Dict[str, Any]] = Field(default_factory=list)
    indexes: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Connection status response models
# ============================================================================

class PoolStatus(BaseModel):
    """Connection pool occupancy."""

    size: int = Field(..., ge=0, description="Open connections")
    idle: int = Field(..., ge=0, description="Idle connections")
    min_size: int = Field(..., ge=0, description="Configured minimum size")
    max_size: int = Field(..., ge=1, description="Configured maximum size")


class ConnectionStatusResponse(BaseModel):
    """Response for get_connection_status."""

    connected: bool = Field(..., description="Whether the server answered a round-trip query")
    host: str
    port: int
    database: str
    user: str
    version: Optional[str] = Field(None, description="Server version text")
    pool: Optional[PoolStatus] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None


# ============================================================================
# Error response models
# ============================================================================

ErrorKind = Literal[
    "InvalidIdentifier", "MissingRequiredField", "TypeMismatch", "LimitExceeded",
    "ConnectionFailure", "QueryFailure", "NotFound"
]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error_kind: ErrorKind = Field(..., description="Error kind")
    message: str = Field(..., description="Human-readable error message")
    recoverable: bool = Field(..., description="Whether retrying may succeed")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_kind": "LimitExceeded",
                "message": "Operation on 'users' would affect 1500 rows, which exceeds the safety limit of 1000. No rows were changed.",
                "recoverable": False,
                "details": {"matched_rows": 1500, "limit": 1000}
            }
        }
    )


def dump(model: BaseModel) -> Dict[str, Any]:
    """Serialize a response model, dropping top-level fields that are None.

    NULL cells inside ``rows`` are kept.
    """
    payload = model.model_dump(by_alias=True)
    return {key: value for key, value in payload.items() if value is not None}


__all__ = [
    'RowsResponse',
    'MutationResponse',
    'CountResponse',
    'ExistsResponse',
    'TableDescription',
    'PoolStatus',
    'ConnectionStatusResponse',
    'ErrorKind',
    'ErrorResponse',
    'dump'
]
