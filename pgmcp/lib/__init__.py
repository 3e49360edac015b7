"""MCP tool implementations and utilities."""

from .logging_config import setup_logging, get_logger

__all__ = [
    # Logging utilities
    'setup_logging',
    'get_logger'
]
