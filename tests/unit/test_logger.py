"""Unit tests for logging configuration and helpers."""

import json
import logging
import sys
from io import StringIO
from unittest.mock import patch

import pytest

from pgmcp.lib.logging_config import (
    TEXT_FORMAT,
    JSONFormatter,
    RedactingFormatter,
    SecretRedactingFilter,
    get_logger,
    setup_logging,
)
from pgmcp.utils.logger import log_database_query, log_error_with_context


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestLoggingSetup:
    """Tests for logger setup and configuration."""

    def test_console_output_goes_to_stderr(self, restore_root_logger):
        """stdout carries the stdio protocol and must stay clean."""
        with patch('sys.stderr', new_callable=StringIO) as mock_stderr, \
                patch('sys.stdout', new_callable=StringIO) as mock_stdout:
            setup_logging(level="INFO")
            logging.getLogger("pgmcp.test_console").info("Test message")

        assert "Test message" in mock_stderr.getvalue()
        assert "INFO" in mock_stderr.getvalue()
        assert mock_stdout.getvalue() == ""

    def test_level_applied(self, restore_root_logger):
        setup_logging(level="warning")

        assert restore_root_logger.level == logging.WARNING

    def test_unknown_level_defaults_to_info(self, restore_root_logger):
        setup_logging(level="chatty")

        assert restore_root_logger.level == logging.INFO

    def test_passwords_redacted_in_output(self, restore_root_logger):
        with patch('sys.stderr', new_callable=StringIO) as mock_stderr:
            setup_logging(level="INFO")
            logging.getLogger("pgmcp.test_redact").info(
                "Connecting with %s", "postgresql://app:hunter2@db/shop"
            )

        output = mock_stderr.getvalue()
        assert "hunter2" not in output
        assert "postgresql://app:***@db/shop" in output

    def test_json_format(self, restore_root_logger):
        with patch('sys.stderr', new_callable=StringIO) as mock_stderr:
            setup_logging(level="INFO", json_format=True)
            logging.getLogger("pgmcp.test_json").warning("Pool exhausted")

        record = json.loads(mock_stderr.getvalue().strip().splitlines()[-1])
        assert record['level'] == 'WARNING'
        assert record['message'] == 'Pool exhausted'
        assert record['logger'] == 'pgmcp.test_json'

    def test_file_output(self, restore_root_logger, tmp_path):
        """Test that logs are written to the configured file."""
        log_file = tmp_path / "server.log"

        with patch('sys.stderr', new_callable=StringIO):
            setup_logging(level="DEBUG", log_file=str(log_file))
            logging.getLogger("pgmcp.test_file").debug("Debug message")

        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "Debug message" in log_file.read_text()

    def test_get_logger_returns_same_instance(self):
        assert get_logger("pgmcp.same") is get_logger("pgmcp.same")

    def test_extra_fields_in_json(self):
        adapter = get_logger("pgmcp.test_extra", extra_fields={'tool': 'query_data'})
        records = []

        class Collector(logging.Handler):
            def emit(self, record):
                records.append(record)

        collector = Collector()
        adapter.logger.addHandler(collector)
        adapter.logger.setLevel(logging.INFO)
        try:
            adapter.info("called")
        finally:
            adapter.logger.removeHandler(collector)

        payload = json.loads(JSONFormatter().format(records[0]))
        assert payload['tool'] == 'query_data'


class TestSecretRedactingFilter:

    def test_filter_rewrites_message(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "dsn=%s", ("password=abc host=db",), None)

        assert SecretRedactingFilter().filter(record) is True
        assert record.getMessage() == "dsn=password=*** host=db"

    def test_filter_leaves_clean_record(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "rows=%d", (3,), None)

        SecretRedactingFilter().filter(record)

        assert record.args == (3,)


class TestLogHelpers:
    """Tests for the database logging helpers."""

    def test_log_database_query_hides_values(self, caplog):
        logger = logging.getLogger("pgmcp.test_query")
        caplog.set_level(logging.DEBUG, logger="pgmcp.test_query")

        log_database_query("SELECT *\n  FROM users WHERE email = $1", ['alice@example.com'], logger)

        message = caplog.records[-1].getMessage()
        assert "SELECT * FROM users WHERE email = $1" in message
        assert "Params: 1" in message
        assert "alice@example.com" not in message

    def test_log_database_query_truncates(self, caplog):
        logger = logging.getLogger("pgmcp.test_truncate")
        caplog.set_level(logging.DEBUG, logger="pgmcp.test_truncate")

        log_database_query("SELECT " + "x, " * 400 + "y", None, logger)

        assert caplog.records[-1].getMessage().endswith("...")

    def test_log_error_with_context_redacts(self, caplog):
        logger = logging.getLogger("pgmcp.test_error")
        caplog.set_level(logging.ERROR, logger="pgmcp.test_error")

        try:
            raise RuntimeError("could not connect to postgresql://app:hunter2@db/shop")
        except RuntimeError as e:
            log_error_with_context(e, {'host': 'db'}, logger)

        message = caplog.records[-1].getMessage()
        assert "hunter2" not in message
        assert "RuntimeError" in message


class TestFormatters:

    def _record_with_traceback(self):
        try:
            raise ConnectionError("connect failed for postgresql://app:hunter2@db/shop")
        except ConnectionError:
            return logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    def test_text_formatter_redacts_traceback(self):
        output = RedactingFormatter(TEXT_FORMAT).format(self._record_with_traceback())

        assert "ConnectionError" in output
        assert "hunter2" not in output

    def test_json_formatter_redacts_traceback(self):
        payload = json.loads(JSONFormatter().format(self._record_with_traceback()))

        assert "hunter2" not in payload['exception']
        assert payload['message'] == "failed"
