"""
Tests for the logging configuration module.

Tests the centralized logging configuration functionality.
"""

import logging
import os
import time
from pathlib import Path
from unittest.mock import patch

from listsync.utils.logging import (
    CONSOLE_FORMAT,
    DATE_FORMAT,
    VERBOSE_FORMAT,
    ColoredFormatter,
    JobLoggerAdapter,
    cleanup_old_logs,
    disable_logging,
    enable_logging,
    get_log_file_path,
    get_log_level_from_env,
    get_logger,
    job_logger,
    set_log_level,
    setup_logging,
)


class TestConstants:
    """Tests for module constants."""

    def test_console_format_defined(self):
        """Test CONSOLE_FORMAT is defined."""
        assert "%(message)s" in CONSOLE_FORMAT

    def test_verbose_format_defined(self):
        """Test VERBOSE_FORMAT is defined."""
        assert "%(filename)s" in VERBOSE_FORMAT
        assert "%(lineno)d" in VERBOSE_FORMAT


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env function."""

    @patch.dict(os.environ, {"LISTSYNC_DEBUG": "1"}, clear=False)
    def test_debug_mode_from_env_1(self):
        """Test debug mode enabled with '1'."""
        assert get_log_level_from_env() == logging.DEBUG

    @patch.dict(os.environ, {"LISTSYNC_DEBUG": "true"}, clear=False)
    def test_debug_mode_from_env_true(self):
        """Test debug mode enabled with 'true'."""
        assert get_log_level_from_env() == logging.DEBUG

    @patch.dict(
        os.environ,
        {"LISTSYNC_LOG_LEVEL": "WARNING", "LISTSYNC_DEBUG": ""},
        clear=False,
    )
    def test_log_level_warning(self):
        """Test WARNING log level from env."""
        assert get_log_level_from_env() == logging.WARNING

    @patch.dict(
        os.environ,
        {"LISTSYNC_LOG_LEVEL": "WARN", "LISTSYNC_DEBUG": ""},
        clear=False,
    )
    def test_warn_alias_for_warning(self):
        """Test WARN is an alias for WARNING."""
        assert get_log_level_from_env() == logging.WARNING

    @patch.dict(
        os.environ,
        {"LISTSYNC_LOG_LEVEL": "INVALID", "LISTSYNC_DEBUG": ""},
        clear=False,
    )
    def test_invalid_level_defaults_to_info(self):
        """Test invalid log level defaults to INFO."""
        assert get_log_level_from_env() == logging.INFO


class TestGetLogFilePath:
    """Tests for get_log_file_path function."""

    @patch.dict(os.environ, {"LISTSYNC_LOG_FILE": "/custom/path/app.log"})
    def test_custom_log_file_from_env(self):
        """Test custom log file path from environment."""
        assert get_log_file_path() == Path("/custom/path/app.log")

    @patch.dict(os.environ, {"LISTSYNC_LOG_FILE": "none"})
    def test_log_file_disabled_with_none(self):
        """Test log file disabled with 'none'."""
        assert get_log_file_path() is None

    @patch.dict(os.environ, {"LISTSYNC_LOG_FILE": "disabled"})
    def test_log_file_disabled_with_disabled(self):
        """Test log file disabled with 'disabled'."""
        assert get_log_file_path() is None

    def test_default_log_dir_with_custom_config(self):
        """Test default log file lives in the config dir's logs folder."""
        with patch.dict(os.environ, {}, clear=True):
            with patch.dict(os.environ, {"LISTSYNC_CONFIG_DIR": "/custom/config"}):
                path = get_log_file_path()
                assert path is not None
                assert "/custom/config/logs" in str(path)
                assert path.name.startswith("listsync_")
                assert path.suffix == ".log"


class TestColoredFormatter:
    """Tests for ColoredFormatter class."""

    def test_formatter_with_colors_disabled(self):
        """Test formatter with colors explicitly disabled."""
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        assert formatter.use_colors is False

    @patch("sys.stdout")
    def test_formatter_supports_color_non_tty(self, mock_stdout):
        """Test formatter detects non-TTY and disables colors."""
        mock_stdout.isatty.return_value = False
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch.dict(os.environ, {"NO_COLOR": "1"})
    @patch("sys.stdout")
    def test_formatter_respects_no_color_env(self, mock_stdout):
        """Test formatter respects NO_COLOR environment variable."""
        mock_stdout.isatty.return_value = True
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    def test_format_record_without_colors(self):
        """Test formatting a record without colors."""
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg="Test message",
            args=(),
            exc_info=None,
        )
        result = formatter.format(record)
        assert "Test message" in result
        assert "\033[" not in result


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_returns_logger(self):
        """Test setup_logging returns the package logger."""
        logger = setup_logging(enable_file_logging=False)
        assert isinstance(logger, logging.Logger)
        assert logger.name == "listsync"

    def test_setup_logging_with_verbose(self):
        """Test setup_logging with verbose mode."""
        logger = setup_logging(verbose=True, enable_file_logging=False)
        assert logger.level == logging.DEBUG

    def test_setup_logging_clears_handlers(self):
        """Test setup_logging clears existing handlers."""
        setup_logging(enable_file_logging=False)
        logger = setup_logging(enable_file_logging=False)
        assert len(logger.handlers) == 1

    def test_setup_logging_with_file(self, tmp_path):
        """Test setup_logging with an explicit log file."""
        log_file = tmp_path / "test.log"
        logger = setup_logging(
            log_file=log_file, enable_file_logging=True, use_colors=False
        )
        assert len(logger.handlers) == 2
        logger.info("Test message")
        assert log_file.exists()
        logger.handlers.clear()

    def test_setup_logging_with_log_dir(self, tmp_path):
        """Test setup_logging writes a dated file into log_dir."""
        logger = setup_logging(log_dir=tmp_path / "logs", use_colors=False)
        logger.info("Into the log dir")
        files = list((tmp_path / "logs").glob("listsync_*.log"))
        assert len(files) == 1
        logger.handlers.clear()

    def test_setup_logging_propagate_disabled(self):
        """Test that propagation to root logger is disabled."""
        logger = setup_logging(enable_file_logging=False)
        assert logger.propagate is False


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs function."""

    def _make_logs(self, log_dir: Path, count: int) -> list[Path]:
        log_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for day in range(count):
            path = log_dir / f"listsync_202401{day + 1:02d}.log"
            path.write_text("log")
            mtime = time.time() - (count - day) * 3600
            os.utime(path, (mtime, mtime))
            paths.append(path)
        return paths

    def test_keeps_newest_files(self, tmp_path):
        """Only the newest keep_count files survive."""
        paths = self._make_logs(tmp_path, 5)
        deleted = cleanup_old_logs(log_dir=tmp_path, keep_count=2)
        assert deleted == 3
        assert sorted(p.name for p in tmp_path.iterdir()) == [
            paths[3].name,
            paths[4].name,
        ]

    def test_zero_keep_count_disables_cleanup(self, tmp_path):
        """keep_count=0 deletes nothing."""
        self._make_logs(tmp_path, 3)
        assert cleanup_old_logs(log_dir=tmp_path, keep_count=0) == 0
        assert len(list(tmp_path.iterdir())) == 3

    def test_ignores_other_files(self, tmp_path):
        """Files without the log prefix are never deleted."""
        self._make_logs(tmp_path, 2)
        (tmp_path / "notes.txt").write_text("keep me")
        cleanup_old_logs(log_dir=tmp_path, keep_count=1)
        assert (tmp_path / "notes.txt").exists()

    def test_missing_directory(self, tmp_path):
        """A missing log directory is not an error."""
        assert cleanup_old_logs(log_dir=tmp_path / "missing", keep_count=1) == 0


class TestJobLogger:
    """Tests for job-scoped loggers."""

    def test_job_logger_returns_adapter(self):
        """job_logger wraps the module logger."""
        log = job_logger("listsync.sync.engine", "int-1", "tbl-1", 2, 3)
        assert isinstance(log, JobLoggerAdapter)
        assert log.logger.name == "listsync.sync.engine"

    def test_prefix_contains_context(self):
        """Messages are prefixed with integration, sync and attempt."""
        log = job_logger("test", "int-1", "tbl-1", 2, 3)
        msg, kwargs = log.process("Fetched 10 records", {})
        assert msg == "[integration=int-1 sync=tbl-1 attempt=2/3] Fetched 10 records"
        assert kwargs["extra"]["integration_id"] == "int-1"

    def test_implicit_sync_shown_as_dash(self):
        """Jobs without a sync id show '-'."""
        log = job_logger("test", "int-1", None, 1, 3)
        msg, _ = log.process("hello", {})
        assert "sync=-" in msg

    def test_records_reach_handlers(self, tmp_path):
        """Adapter output lands in the configured log file."""
        log_file = tmp_path / "job.log"
        logger = setup_logging(log_file=log_file, use_colors=False)
        job_logger("listsync.test", "int-9", "tbl-9", 1, 3).info("Sync complete")
        for handler in logger.handlers:
            handler.flush()
        assert "[integration=int-9 sync=tbl-9 attempt=1/3] Sync complete" in (
            log_file.read_text()
        )
        logger.handlers.clear()


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_with_module_name(self):
        """Test get_logger with module name."""
        assert get_logger("listsync.test").name == "listsync.test"

    def test_get_logger_without_prefix(self):
        """Test get_logger prepends prefix if needed."""
        assert get_logger("mymodule").name == "listsync.mymodule"


class TestSetLogLevel:
    """Tests for set_log_level function."""

    def test_set_log_level_changes_level(self):
        """Test set_log_level changes the logger level."""
        setup_logging(enable_file_logging=False)
        set_log_level(logging.ERROR)
        assert logging.getLogger("listsync").level == logging.ERROR
        set_log_level(logging.INFO)


class TestDisableEnableLogging:
    """Tests for disable_logging and enable_logging functions."""

    def test_disable_and_enable(self):
        """disable_logging and enable_logging toggle the package logger."""
        setup_logging(enable_file_logging=False)
        disable_logging()
        assert logging.getLogger("listsync").disabled is True
        enable_logging()
        assert logging.getLogger("listsync").disabled is False
