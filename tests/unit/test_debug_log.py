"""Unit tests for debug logging."""

from __future__ import annotations

import logging

import pytest

from nanocode_acp.debug_log import (
    DebugLogHandler,
    LogSource,
    NanocodeLogger,
    clear_log_buffer,
    export_logs_to_file,
    log_buffer,
    setup_debug_logging,
)
from nanocode_acp.limits import MAX_LOG_MESSAGE_LENGTH

pytestmark = pytest.mark.unit


class TestLogTruncation:
    """Tests for log message truncation."""

    def test_log_truncates_oversized_messages(self):
        """Very large log messages should be truncated to prevent memory bloat."""
        clear_log_buffer()
        logger = NanocodeLogger()
        large_message = "x" * 10000

        logger.info(large_message)

        assert len(log_buffer) == 1
        logged_message = log_buffer[0].message
        assert len(logged_message) <= MAX_LOG_MESSAGE_LENGTH + 20
        assert "... [truncated]" in logged_message

    def test_log_preserves_small_messages(self):
        clear_log_buffer()
        logger = NanocodeLogger()

        logger.info("Agent ready")

        assert len(log_buffer) == 1
        assert log_buffer[0].message == "Agent ready"
        assert log_buffer[0].source is LogSource.AGENT

    def test_log_truncates_at_exact_boundary(self):
        """Messages exactly at the limit should not be truncated."""
        clear_log_buffer()
        logger = NanocodeLogger()
        exact_message = "y" * MAX_LOG_MESSAGE_LENGTH

        logger.info(exact_message)

        assert log_buffer[0].message == exact_message

    def test_log_truncates_one_over_boundary(self):
        clear_log_buffer()
        logger = NanocodeLogger()

        logger.info("z" * (MAX_LOG_MESSAGE_LENGTH + 1))

        logged_message = log_buffer[0].message
        assert logged_message.endswith("... [truncated]")
        assert logged_message.startswith("z" * 100)


def test_keyword_arguments_are_rendered():
    clear_log_buffer()

    NanocodeLogger().warning("Agent exited", code=2)

    assert log_buffer[0].level == "WARNING"
    assert log_buffer[0].message == "Agent exited code=2"


def test_setup_routes_package_logging_into_buffer(monkeypatch: pytest.MonkeyPatch):
    package_logger = logging.getLogger("nanocode_acp")
    monkeypatch.setattr(package_logger, "handlers", [])
    monkeypatch.setattr(package_logger, "level", package_logger.level)
    clear_log_buffer()

    setup_debug_logging(logging.DEBUG)
    setup_debug_logging(logging.DEBUG)
    logging.getLogger("nanocode_acp.factory").info("Launching agent: nanocode acp")

    assert [type(h) for h in package_logger.handlers] == [DebugLogHandler]
    python_entries = [e for e in log_buffer if e.source is LogSource.LOGGING]
    assert [e.message for e in python_entries] == [
        "nanocode_acp.factory: Launching agent: nanocode acp"
    ]


def test_export_writes_every_entry(tmp_path):
    clear_log_buffer()
    logger = NanocodeLogger()
    logger.info("first")
    logger.error("second")
    output = tmp_path / "logs" / "session.log"

    count = export_logs_to_file(str(output))

    assert count == 2
    lines = output.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "# nanocode-acp debug log (2 entries)"
    assert lines[2].endswith("INFO    [agent] first")
    assert lines[3].endswith("ERROR   [agent] second")
