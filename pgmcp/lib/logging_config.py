"""Logging setup for the server: stderr console output, optional JSON and file output.

Every handler installed here masks connection passwords, both in the
message and in any traceback attached to the record.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from pgmcp.models.config import redact_secrets

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Driver loggers that are chatty at DEBUG
NOISY_LOGGERS = ('asyncio', 'asyncpg', 'httpx', 'sse_starlette', 'uvicorn.access')


class RedactingFormatter(logging.Formatter):
    """Plain-text formatter whose output, tracebacks included, has passwords masked."""

    def format(self, record: logging.LogRecord) -> str:
        return redact_secrets(super().format(record))


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': redact_secrets(record.getMessage()),
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_obj['exception'] = redact_secrets(self.formatException(record.exc_info))

        # Context bound with get_logger(..., extra_fields=...)
        context = getattr(record, 'context', None)
        if context:
            log_obj.update({key: value for key, value in context.items() if key not in log_obj})

        return json.dumps(log_obj, default=str)


class SecretRedactingFilter(logging.Filter):
    """Mask connection passwords in the record's message before any handler sees it."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class ContextAdapter(logging.LoggerAdapter):
    """Attach fixed context (tool name, profile, ...) to every record."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        extra['context'] = {**self.extra, **extra.get('context', {})}
        kwargs['extra'] = extra
        return msg, kwargs


def _build_handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(SecretRedactingFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> None:
    """Configure the root logger.

    Console output goes to stderr; stdout carries the stdio protocol.

    Args:
        level: Logging level name; unknown names fall back to INFO
        json_format: Emit one JSON object per line instead of plain text
        log_file: Also append records to this file
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    log_level = getattr(logging, level.upper(), None)
    if not isinstance(log_level, int):
        log_level = logging.INFO
    root_logger.setLevel(log_level)

    formatter = JSONFormatter() if json_format else RedactingFormatter(TEXT_FORMAT)

    root_logger.addHandler(_build_handler(logging.StreamHandler(sys.stderr), formatter))
    if log_file:
        root_logger.addHandler(_build_handler(logging.FileHandler(log_file), formatter))

    if log_level <= logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.INFO)


def get_logger(name: str, extra_fields: Optional[Dict[str, Any]] = None):
    """Return the named logger, wrapped to carry ``extra_fields`` when given."""
    logger = logging.getLogger(name)
    if extra_fields:
        return ContextAdapter(logger, extra_fields)
    return logger
