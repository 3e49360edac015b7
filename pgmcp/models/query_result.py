"""Result of a single executed statement."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Command tags whose trailing number is the affected/returned row count
_COUNTED_COMMANDS = {'INSERT', 'UPDATE', 'DELETE', 'SELECT', 'MERGE', 'COPY', 'FETCH', 'MOVE'}


def parse_row_count(status: Optional[str], default: int) -> int:
    """Extract the row count from a command status such as ``INSERT 0 1``.

    Args:
        status: Command completion tag reported by the server
        default: Count to use when the tag carries none (e.g. ``CREATE TABLE``)
    """
    if not status:
        return default
    parts = status.split()
    if parts[0].upper() in _COUNTED_COMMANDS and parts[-1].isdigit():
        return int(parts[-1])
    return default


@dataclass
class QueryResult:
    """Rows returned by a statement plus the affected/returned row count."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    columns: List[str] = field(default_factory=list)
    status: Optional[str] = None

    def scalar(self) -> Any:
        """First column of the first row, or None for an empty result."""
        if not self.rows:
            return None
        return next(iter(self.rows[0].values()), None)
