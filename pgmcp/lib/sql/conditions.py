"""WHERE clause construction from column/value maps."""

from typing import Any, List, Mapping, Optional, Tuple

from pgmcp.models.error_types import MissingRequiredFieldError
from pgmcp.services.query_utils import require_column_name


def ensure_mapping(value: Any, field: str, allow_empty: bool = True) -> dict:
    """Check that a tool argument is a JSON object.

    Args:
        value: Argument value as delivered by the protocol layer
        field: Argument name for error reporting
        allow_empty: Whether an empty (or absent) object is acceptable

    Returns:
        The mapping, or an empty dict for an absent optional argument

    Raises:
        MissingRequiredFieldError: If the value is not an object or is empty when required
    """
    if value is None:
        if allow_empty:
            return {}
        raise MissingRequiredFieldError(field)
    if not isinstance(value, Mapping):
        raise MissingRequiredFieldError(field, f"'{field}' must be a JSON object")
    if not value and not allow_empty:
        raise MissingRequiredFieldError(field, f"'{field}' must be a non-empty JSON object")
    return dict(value)


def build_assignments(values: Mapping[str, Any],
                      start_index: int = 1,
                      separator: str = ", ") -> Tuple[str, List[Any]]:
    """Build ``col = $n`` pairs for every entry, in map order.

    Returns:
        Tuple of (joined pairs, parameter values)
    """
    pairs = []
    params = []
    for offset, (column, value) in enumerate(values.items()):
        require_column_name(column)
        pairs.append(f"{column} = ${start_index + offset}")
        params.append(value)
    return separator.join(pairs), params


def build_where_clause(conditions: Optional[Mapping[str, Any]],
                       start_index: int = 1) -> Tuple[str, List[Any]]:
    """Convert an equality condition map into a parameterized WHERE clause.

    The clause has one placeholder per entry, numbered from ``start_index``
    in map iteration order. An empty map yields ``("", [])`` and no WHERE
    keyword; the caller decides whether that is acceptable.

    Args:
        conditions: Mapping of column name to value
        start_index: Index of the first positional placeholder

    Returns:
        Tuple of (clause text starting with ``WHERE`` or empty, parameters)

    Raises:
        InvalidIdentifierError: If a column name is not a valid identifier
    """
    if not conditions:
        return "", []
    predicate, params = build_assignments(conditions, start_index, separator=" AND ")
    return f"WHERE {predicate}", params
