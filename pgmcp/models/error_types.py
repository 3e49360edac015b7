"""Error types for PostgreSQL MCP Server."""

from typing import Any, Dict, Optional


class MCPError(Exception):
    """Base error class for MCP operations."""

    error_kind = "QueryFailure"

    def __init__(self, message: str, recoverable: bool = True, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Render the error as a structured payload."""
        payload = {
            'error_kind': self.error_kind,
            'message': self.message,
            'recoverable': self.recoverable
        }
        if self.details:
            payload['details'] = self.details
        return payload


class InvalidIdentifierError(MCPError):
    """Error raised when a table or column name fails the identifier grammar."""

    error_kind = "InvalidIdentifier"

    def __init__(self, identifier: Any, kind: str = "identifier"):
        message = f"Invalid {kind} name: {identifier!r}"
        super().__init__(message, recoverable=False, details={'identifier': str(identifier), 'kind': kind})
        self.identifier = identifier
        self.kind = kind


class MissingRequiredFieldError(MCPError):
    """Error raised when a required tool argument is absent or empty."""

    error_kind = "MissingRequiredField"

    def __init__(self, field: str, message: str = None):
        if message is None:
            message = f"Missing required field: '{field}'"
        super().__init__(message, recoverable=False, details={'field': field})
        self.field = field


class TypeMismatchError(MCPError):
    """Error raised when a value cannot be coerced to the target column type."""

    error_kind = "TypeMismatch"

    def __init__(self, message: str, value: Any = None, type_name: Optional[str] = None):
        details = {}
        if type_name:
            details['type'] = type_name
        super().__init__(message, recoverable=False, details=details)
        self.value = value
        self.type_name = type_name


class LimitExceededError(MCPError):
    """Error raised when a mutation would touch more rows than the safety limit."""

    error_kind = "LimitExceeded"

    def __init__(self, table_name: str, matched_rows: int, limit: int):
        message = (
            f"Operation on '{table_name}' would affect {matched_rows} rows, "
            f"which exceeds the safety limit of {limit}. No rows were changed."
        )
        super().__init__(message, recoverable=False, details={'matched_rows': matched_rows, 'limit': limit})
        self.table_name = table_name
        self.matched_rows = matched_rows
        self.limit = limit


class ConnectionFailureError(MCPError):
    """Error raised when database connection fails."""

    error_kind = "ConnectionFailure"

    def __init__(self, message: str, statement_sent: bool = False):
        super().__init__(message, recoverable=True)
        self.statement_sent = statement_sent


class QueryFailureError(MCPError):
    """Error raised when the database rejects or fails a statement."""

    error_kind = "QueryFailure"


class NotFoundError(MCPError):
    """Error raised when a table or column that was assumed to exist is absent."""

    error_kind = "NotFound"

    def __init__(self, name: str, message: str = None):
        if message is None:
            message = f"'{name}' does not exist"
        super().__init__(message, recoverable=False, details={'name': name})
        self.name = name
