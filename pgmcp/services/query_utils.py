"""Query utilities for SQL injection prevention and validation."""

import re
from dataclasses import dataclass
from typing import Any, Optional

from pgmcp.models.error_types import InvalidIdentifierError

# PostgreSQL truncates identifiers beyond NAMEDATALEN - 1 bytes
MAX_IDENTIFIER_LENGTH = 63

DEFAULT_SCHEMA = 'public'

_IDENTIFIER = r'[a-zA-Z_][a-zA-Z0-9_]*'
_IDENTIFIER_RE = re.compile(rf'^{_IDENTIFIER}$')
_TABLE_RE = re.compile(rf'^{_IDENTIFIER}(\.{_IDENTIFIER})?$')

# Reserved words that cannot be used as bare identifiers, plus the DML/DDL verbs
RESERVED_KEYWORDS = frozenset({
    'all', 'alter', 'analyse', 'analyze', 'and', 'any', 'array', 'as', 'asc',
    'asymmetric', 'both', 'case', 'cast', 'check', 'collate', 'column',
    'constraint', 'create', 'current_catalog', 'current_date', 'current_role',
    'current_time', 'current_timestamp', 'current_user', 'default',
    'deferrable', 'delete', 'desc', 'distinct', 'do', 'drop', 'else', 'end',
    'except', 'false', 'fetch', 'for', 'foreign', 'from', 'grant', 'group',
    'having', 'in', 'initially', 'insert', 'intersect', 'into', 'lateral',
    'leading', 'limit', 'localtime', 'localtimestamp', 'not', 'null',
    'offset', 'on', 'only', 'or', 'order', 'placing', 'primary', 'references',
    'returning', 'revoke', 'select', 'session_user', 'some', 'symmetric',
    'system_user', 'table', 'then', 'to', 'trailing', 'true', 'truncate',
    'union', 'unique', 'update', 'user', 'using', 'variadic', 'when', 'where',
    'window', 'with',
})


def _is_plain_identifier(name: Any) -> bool:
    return (
        isinstance(name, str)
        and len(name) <= MAX_IDENTIFIER_LENGTH
        and bool(_IDENTIFIER_RE.match(name))
        and name.lower() not in RESERVED_KEYWORDS
    )


def validate_table_name(table_name: str) -> bool:
    """Validate table name to prevent SQL injection.

    Args:
        table_name: Table name to validate, optionally schema-qualified

    Returns:
        True if valid, False otherwise
    """
    if not isinstance(table_name, str) or not _TABLE_RE.match(table_name):
        return False
    return all(_is_plain_identifier(part) for part in table_name.split('.'))


def validate_schema_name(schema_name: str) -> bool:
    """Validate schema name to prevent SQL injection."""
    return _is_plain_identifier(schema_name)


def validate_column_name(column_name: str) -> bool:
    """Validate column name to prevent SQL injection."""
    return _is_plain_identifier(column_name)


def require_column_name(column_name: Any) -> str:
    """Return the column name or raise InvalidIdentifierError."""
    if not validate_column_name(column_name):
        raise InvalidIdentifierError(column_name, kind="column")
    return column_name


def require_schema_name(schema_name: Any) -> str:
    """Return the schema name or raise InvalidIdentifierError."""
    if not validate_schema_name(schema_name):
        raise InvalidIdentifierError(schema_name, kind="schema")
    return schema_name


def fold_identifier(name: Optional[str]) -> Optional[str]:
    """Case-fold a validated identifier the way the server folds unquoted names."""
    return name.lower() if name is not None else None


def split_table_schema(full_table_name: str) -> tuple[Optional[str], str]:
    """Split a table name into schema and table parts.

    Args:
        full_table_name: Table name, possibly with schema (e.g., 'public.users')

    Returns:
        Tuple of (schema, table_name) where schema may be None
    """
    parts = full_table_name.split('.')
    if len(parts) == 2:
        return parts[0], parts[1]
    elif len(parts) == 1:
        return None, parts[0]
    else:
        raise ValueError(f"Invalid table name format: {full_table_name}")


@dataclass(frozen=True)
class TableRef:
    """A validated, optionally schema-qualified table identifier."""

    name: str
    schema: Optional[str] = None

    @classmethod
    def parse(cls, table_name: Any, schema: Optional[str] = None) -> 'TableRef':
        """Validate a caller-supplied table name.

        A schema given in the name (``schema.table``) wins over the
        ``schema`` argument. Both parts are folded to lower case, as
        PostgreSQL folds unquoted identifiers, so catalog lookups see the
        same relation the generated SQL reaches.

        Raises:
            InvalidIdentifierError: If any part fails the identifier grammar
        """
        if not validate_table_name(table_name):
            raise InvalidIdentifierError(table_name, kind="table")
        embedded_schema, name = split_table_schema(table_name)
        if embedded_schema is None and schema is not None:
            embedded_schema = require_schema_name(schema)
        return cls(name=fold_identifier(name), schema=fold_identifier(embedded_schema))

    @property
    def schema_name(self) -> str:
        """Schema used for catalog lookups."""
        return self.schema or DEFAULT_SCHEMA

    @property
    def sql(self) -> str:
        """Identifier text safe to embed in generated SQL."""
        if self.schema:
            return f"{self.schema}.{self.name}"
        return self.name

    def __str__(self) -> str:
        return self.sql
