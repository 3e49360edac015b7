"""Conversion between JSON-like values and native PostgreSQL values.

Parameters are coerced against the PostgreSQL type the server inferred for
each placeholder of a prepared statement, so ``{"id": "42"}`` binds as an
integer for an ``int4`` column and as text for a ``text`` column. Result
cells are converted back into JSON-compatible values; unknown types fall
back to their text representation so introspection never fails.
"""

import ipaddress
import json
import math
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

from pgmcp.models.error_types import TypeMismatchError

INTEGER_TYPES = frozenset({'int2', 'int4', 'int8', 'oid'})
FLOAT_TYPES = frozenset({'float4', 'float8'})
NUMERIC_TYPES = frozenset({'numeric'})
TEXT_TYPES = frozenset({'text', 'varchar', 'bpchar', 'char', 'name', 'citext', 'xml'})
JSON_TYPES = frozenset({'json', 'jsonb'})
TIMESTAMP_TYPES = frozenset({'timestamp', 'timestamptz'})
TIME_TYPES = frozenset({'time', 'timetz'})
NETWORK_TYPES = frozenset({'inet', 'cidr'})

_TRUE_STRINGS = frozenset({'true', 't', 'yes', 'y', '1', 'on'})
_FALSE_STRINGS = frozenset({'false', 'f', 'no', 'n', '0', 'off'})


def _describe(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def _mismatch(value: Any, type_name: str, position: Optional[int], reason: str = None) -> TypeMismatchError:
    target = f"parameter ${position}" if position else "value"
    message = f"Cannot use {_describe(value)} {value!r} for {target} of type '{type_name}'"
    if reason:
        message = f"{message}: {reason}"
    return TypeMismatchError(message, value=value, type_name=type_name)


def _to_int(value: Any, type_name: str, position: Optional[int]) -> int:
    if isinstance(value, bool):
        raise _mismatch(value, type_name, position)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise _mismatch(value, type_name, position, "not an integer")
    raise _mismatch(value, type_name, position)


def _to_float(value: Any, type_name: str, position: Optional[int]) -> float:
    if isinstance(value, bool):
        raise _mismatch(value, type_name, position)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            raise _mismatch(value, type_name, position, "not a number")
    raise _mismatch(value, type_name, position)


def _to_decimal(value: Any, type_name: str, position: Optional[int]) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise _mismatch(value, type_name, position)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise _mismatch(value, type_name, position, "not a number")


def _to_bool(value: Any, type_name: str, position: Optional[int]) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise _mismatch(value, type_name, position)


def _to_temporal(value: Any, type_name: str, position: Optional[int]) -> Any:
    if not isinstance(value, str):
        raise _mismatch(value, type_name, position, "expected ISO-8601 text")
    text = value.strip()
    try:
        if type_name in TIMESTAMP_TYPES:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
            if type_name == 'timestamptz' and parsed.tzinfo is None:
                return parsed.replace(tzinfo=timezone.utc)
            if type_name == 'timestamp' and parsed.tzinfo is not None:
                return parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        if type_name == 'date':
            return date.fromisoformat(text)
        parsed_time = time.fromisoformat(text.replace('Z', '+00:00'))
        if type_name == 'timetz' and parsed_time.tzinfo is None:
            return parsed_time.replace(tzinfo=timezone.utc)
        return parsed_time
    except ValueError:
        raise _mismatch(value, type_name, position, "invalid ISO-8601 text")


def to_sql_param(value: Any, type_name: Optional[str], position: Optional[int] = None) -> Any:
    """Coerce a JSON-like value to the native parameter for a PostgreSQL type.

    Args:
        value: None, bool, int, float, str, list or dict
        type_name: PostgreSQL type name of the placeholder (e.g. 'int4', '_text')
        position: 1-based placeholder index, used in error messages

    Returns:
        Value accepted by the driver for that type

    Raises:
        TypeMismatchError: If the value cannot be represented as the type
    """
    if value is None:
        return None
    type_name = (type_name or 'unknown').lower()

    if type_name in JSON_TYPES:
        return json.dumps(value)

    if type_name.startswith('_'):
        if not isinstance(value, list):
            raise _mismatch(value, type_name, position, "expected an array")
        element_type = type_name[1:]
        return [to_sql_param(item, element_type, position) for item in value]

    if isinstance(value, (dict, list)):
        raise _mismatch(value, type_name, position, "arrays and objects require a json, jsonb or array column")

    if type_name in INTEGER_TYPES:
        return _to_int(value, type_name, position)
    if type_name in FLOAT_TYPES:
        return _to_float(value, type_name, position)
    if type_name in NUMERIC_TYPES:
        return _to_decimal(value, type_name, position)
    if type_name == 'money':
        # the driver binds money as text; the server parses it with lc_monetary
        if isinstance(value, str):
            return value.strip()
        return str(_to_decimal(value, type_name, position))
    if type_name == 'bool':
        return _to_bool(value, type_name, position)
    if type_name in TEXT_TYPES:
        if not isinstance(value, str):
            raise _mismatch(value, type_name, position, "expected text")
        return value
    if type_name in TIMESTAMP_TYPES or type_name == 'date' or type_name in TIME_TYPES:
        return _to_temporal(value, type_name, position)
    if type_name == 'interval':
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _mismatch(value, type_name, position, "expected a number of seconds")
        return timedelta(seconds=value)
    if type_name == 'uuid':
        try:
            return uuid.UUID(str(value))
        except ValueError:
            raise _mismatch(value, type_name, position, "invalid UUID")
    if type_name in NETWORK_TYPES:
        try:
            if type_name == 'cidr':
                return ipaddress.ip_network(str(value), strict=False)
            return ipaddress.ip_interface(str(value))
        except ValueError:
            raise _mismatch(value, type_name, position, "invalid network address")
    if type_name == 'bytea':
        if not isinstance(value, str):
            raise _mismatch(value, type_name, position, "expected text")
        if value.startswith('\\x'):
            try:
                return bytes.fromhex(value[2:])
            except ValueError:
                raise _mismatch(value, type_name, position, "invalid hex")
        return value.encode('utf-8')
    if type_name == 'unknown':
        if isinstance(value, bool):
            return 'true' if value else 'false'
        return str(value)

    # enums, domains and extension types take the value as sent
    return value


def from_sql_cell(value: Any, type_name: Optional[str] = None) -> Any:
    """Convert a native result cell into a JSON-compatible value.

    Never raises: anything without a structured mapping becomes text.
    """
    if value is None:
        return None
    if type_name in JSON_TYPES and isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    if isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return str(value)
        if value == value.to_integral_value():
            return int(value)
        as_float = float(value)
        if Decimal(repr(as_float)) == value:
            return as_float
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return '\\x' + bytes(value).hex()
    if isinstance(value, dict):
        return {str(k): from_sql_cell(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        element_type = type_name[1:] if type_name and type_name.startswith('_') else None
        return [from_sql_cell(item, element_type) for item in value]
    if hasattr(value, 'items') and hasattr(value, 'keys'):
        # nested records from composite types
        return {str(k): from_sql_cell(v) for k, v in value.items()}
    return str(value)


def unique_column_names(names: Sequence[str]) -> List[str]:
    """Suffix repeated output names (``id``, ``id_1``) so no column is lost.

    Joins such as ``SELECT * FROM users u JOIN orders o ...`` return more
    than one column with the same name.
    """
    used = set()
    unique = []
    for name in names:
        candidate, suffix = name, 0
        while candidate in used:
            suffix += 1
            candidate = f"{name}_{suffix}"
        used.add(candidate)
        unique.append(candidate)
    return unique


def row_to_dict(record: Any, attributes: Sequence[Any] = (),
                names: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Convert a result row into an ordered dict of JSON-compatible values.

    Args:
        record: asyncpg Record (or any mapping with ``items()``)
        attributes: Statement attributes carrying ``name`` and ``type.name``
        names: Output keys by position; defaults to the de-duplicated
            attribute names
    """
    if not attributes:
        return {name: from_sql_cell(value) for name, value in record.items()}

    if names is None:
        names = unique_column_names([attr.name for attr in attributes])
    return {
        name: from_sql_cell(value, attr.type.name)
        for name, attr, value in zip(names, attributes, record.values())
    }
