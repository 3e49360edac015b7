"""SQL construction and classification package."""

from .query_validator import is_read_only_query

__all__ = [
    'is_read_only_query'
]
