"""Unit tests for logging configuration module.

Tests verify that the logging configuration functions work correctly with different
log levels, formats, and file logging options.
"""

import logging
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from homesearch_ai.core.logging_config import (
    DETAILED_FORMAT,
    JSON_FORMAT,
    MODULE_LOG_LEVELS,
    SIMPLE_FORMAT,
    get_logger,
    setup_logging,
)


def _console_handler() -> logging.Handler:
    root_logger = logging.getLogger()
    return next(
        h for h in root_logger.handlers if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    )


class TestSetupLoggingLogLevels:
    """Test setup_logging with different log levels."""

    @pytest.mark.parametrize(
        "log_level,expected_level",
        [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("debug", logging.DEBUG),  # Test lowercase
        ],
    )
    def test_setup_logging_with_different_levels(self, log_level, expected_level):
        setup_logging(log_level=log_level, enable_file=False)

        assert _console_handler().level == expected_level

    def test_root_logger_captures_everything(self):
        setup_logging(log_level="ERROR", enable_file=False)

        assert logging.getLogger().level == logging.DEBUG


class TestSetupLoggingFormats:
    """Test setup_logging with different log formats."""

    @pytest.mark.parametrize(
        "log_format,expected_format",
        [
            ("simple", SIMPLE_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("json", JSON_FORMAT),
            ("unknown", DETAILED_FORMAT),
        ],
    )
    def test_setup_logging_with_different_formats(self, log_format, expected_format):
        setup_logging(log_format=log_format, enable_file=False)

        assert _console_handler().formatter._fmt == expected_format

    def test_setup_logging_format_with_timestamp(self):
        setup_logging(log_format="detailed", enable_file=False)

        assert _console_handler().formatter.datefmt == "%Y-%m-%d %H:%M:%S"


class TestSetupLoggingFileHandling:
    """Test setup_logging file logging functionality."""

    def test_file_handler_requires_file_logging_enabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch("homesearch_ai.core.logging_config.LOG_FILE_DIR", tmpdir):
                with patch("homesearch_ai.core.logging_config.ENABLE_FILE_LOGGING", False):
                    setup_logging(enable_file=True)

                    root_logger = logging.getLogger()
                    assert not any(isinstance(h, logging.FileHandler) for h in root_logger.handlers)

    def test_file_handler_created_and_always_debug(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_dir = Path(tmpdir) / "new_logs"
            with patch("homesearch_ai.core.logging_config.LOG_FILE_DIR", str(log_dir)):
                with patch("homesearch_ai.core.logging_config.ENABLE_FILE_LOGGING", True):
                    setup_logging(log_level="ERROR", enable_file=True)

                    root_logger = logging.getLogger()
                    file_handler = next(h for h in root_logger.handlers if isinstance(h, logging.FileHandler))
                    assert file_handler.level == logging.DEBUG
                    assert log_dir.exists()

                    root_logger.removeHandler(file_handler)
                    file_handler.close()


class TestSetupLoggingHandlerManagement:
    """Test setup_logging handler management."""

    def test_setup_logging_removes_existing_handlers(self):
        setup_logging(enable_file=False)
        setup_logging(enable_file=False)

        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1

    def test_module_log_levels_applied(self):
        setup_logging(enable_file=False)

        for module_name, level in MODULE_LOG_LEVELS.items():
            assert logging.getLogger(module_name).level == logging.getLevelName(level)


def test_get_logger_returns_named_logger():
    logger = get_logger("homesearch_ai.agent_core.geo")

    assert logger.name == "homesearch_ai.agent_core.geo"
    assert logger is logging.getLogger("homesearch_ai.agent_core.geo")
