"""
Tests for the daemon module.

Tests interval parsing, PID file management, the scheduler loop,
signal handling and the daily maintenance pass.
"""

import os
import signal
from unittest.mock import MagicMock, patch

import pytest

from listsync.daemon import (
    DEFAULT_MAINTENANCE_INTERVAL,
    DEFAULT_PID_FILE,
    DaemonAlreadyRunningError,
    DaemonError,
    DaemonScheduler,
    DaemonStats,
    PIDFileError,
    PIDFileManager,
    parse_interval,
)


class TestParseInterval:
    """Tests for interval parsing functionality."""

    def test_parse_interval_units(self):
        """Test parsing intervals with unit suffixes."""
        assert parse_interval("30s") == 30
        assert parse_interval("5m") == 300
        assert parse_interval("1h") == 3600
        assert parse_interval("7d") == 604800

    def test_parse_interval_integer_passthrough(self):
        """Test that positive integers are passed through unchanged."""
        assert parse_interval(3600) == 3600

    def test_parse_interval_numeric_string(self):
        """Test parsing numeric string without unit."""
        assert parse_interval("60") == 60

    def test_parse_interval_case_and_whitespace(self):
        """Test that parsing ignores case and surrounding whitespace."""
        assert parse_interval(" 1H ") == 3600

    @pytest.mark.parametrize("value", ["", "abc", "1w", "h1", "-5m", "1.5h"])
    def test_parse_interval_invalid_format_raises_error(self, value):
        """Test that malformed intervals are rejected."""
        with pytest.raises(ValueError, match="Invalid interval format"):
            parse_interval(value)

    @pytest.mark.parametrize("value", [0, "0", "0m", -10])
    def test_parse_interval_rejects_non_positive(self, value):
        """A zero or negative interval would spin the scheduler."""
        with pytest.raises(ValueError, match="must be positive"):
            parse_interval(value)

    @pytest.mark.parametrize("value", [True, 1.5, None])
    def test_parse_interval_invalid_type_raises_error(self, value):
        """Test that non-str/int types are rejected."""
        with pytest.raises(ValueError, match="Invalid interval type"):
            parse_interval(value)


class TestDaemonStats:
    """Tests for DaemonStats dataclass."""

    def test_daemon_stats_default_values(self):
        """Test DaemonStats has correct default values."""
        stats = DaemonStats()
        assert stats.tick_count == 0
        assert stats.tick_error_count == 0
        assert stats.jobs_enqueued == 0
        assert stats.last_tick_at is None
        assert stats.last_error is None
        assert stats.maintenance_count == 0


class TestPIDFileManager:
    """Tests for PID file management."""

    def test_pid_manager_default_path(self):
        """Test PIDFileManager uses default path when not specified."""
        assert PIDFileManager().pid_file == DEFAULT_PID_FILE

    def test_pid_manager_create(self, tmp_path):
        """Test PIDFileManager creates PID file with parents."""
        pid_file = tmp_path / "nested" / "daemon.pid"
        PIDFileManager(pid_file=pid_file).create()
        assert int(pid_file.read_text()) == os.getpid()

    def test_pid_manager_read_nonexistent_returns_none(self, tmp_path):
        """Test read() returns None for non-existent file."""
        assert PIDFileManager(pid_file=tmp_path / "missing.pid").read() is None

    def test_pid_manager_read_invalid_pid_raises_error(self, tmp_path):
        """Test read() raises PIDFileError for invalid PID content."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text("not_a_number")
        with pytest.raises(PIDFileError, match="Invalid PID"):
            PIDFileManager(pid_file=pid_file).read()

    def test_pid_manager_remove(self, tmp_path):
        """Test PIDFileManager removes PID file, and tolerates a missing one."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text("12345")
        manager = PIDFileManager(pid_file=pid_file)
        manager.remove()
        assert not pid_file.exists()
        manager.remove()

    def test_pid_manager_create_detects_already_running(self, tmp_path):
        """Test create() raises error if daemon already running."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text(str(os.getpid()))
        with pytest.raises(DaemonAlreadyRunningError, match="already running"):
            PIDFileManager(pid_file=pid_file).create()

    def test_pid_manager_create_removes_stale_pid_file(self, tmp_path):
        """Test create() replaces a stale PID file."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text("99999999")
        manager = PIDFileManager(pid_file=pid_file)

        with patch.object(manager, "_is_process_running", return_value=False):
            manager.create()

        assert int(pid_file.read_text()) == os.getpid()

    def test_pid_manager_is_process_running(self):
        """Test _is_process_running for the current and a missing process."""
        manager = PIDFileManager()
        assert manager._is_process_running(os.getpid()) is True
        assert manager._is_process_running(99999999) is False


class TestDaemonScheduler:
    """Tests for DaemonScheduler configuration and callbacks."""

    def test_scheduler_default_initialization(self):
        """Test DaemonScheduler initializes with defaults."""
        scheduler = DaemonScheduler()

        assert scheduler.interval == 3600
        assert scheduler.run_immediately is True
        assert scheduler.maintenance_interval == DEFAULT_MAINTENANCE_INTERVAL
        assert scheduler.pid_file == DEFAULT_PID_FILE
        assert scheduler.is_running() is False

    def test_stop_sets_shutdown_flag(self):
        """Test stop() sets the shutdown flag."""
        scheduler = DaemonScheduler()
        scheduler.stop()
        assert scheduler._shutdown_requested is True

    def test_run_tick_without_callback(self):
        """Test _run_tick returns False without callback."""
        assert DaemonScheduler()._run_tick() is False

    def test_run_tick_counts_enqueued_jobs(self):
        """Test _run_tick records the jobs the callback enqueued."""
        scheduler = DaemonScheduler()
        scheduler.set_tick_callback(MagicMock(return_value=3))

        assert scheduler._run_tick() is True
        assert scheduler._run_tick() is True

        assert scheduler.stats.tick_count == 2
        assert scheduler.stats.jobs_enqueued == 6
        assert scheduler.stats.last_tick_at is not None

    def test_run_tick_with_exception(self):
        """A failing tick is logged and counted, never raised."""
        scheduler = DaemonScheduler()
        scheduler.set_tick_callback(MagicMock(side_effect=RuntimeError("db locked")))

        assert scheduler._run_tick() is False
        assert scheduler.stats.tick_error_count == 1
        assert scheduler.stats.last_error == "db locked"

    def test_maintenance_runs_once_per_interval(self):
        """Maintenance runs at start and then only after its interval."""
        scheduler = DaemonScheduler(maintenance_interval=100)
        maintenance = MagicMock()
        scheduler.set_maintenance_callback(maintenance)

        with patch("listsync.daemon.scheduler.time.time", return_value=1000.0):
            scheduler._run_maintenance_if_due()
            scheduler._run_maintenance_if_due()
        assert maintenance.call_count == 1

        with patch("listsync.daemon.scheduler.time.time", return_value=1100.0):
            scheduler._run_maintenance_if_due()
        assert maintenance.call_count == 2
        assert scheduler.stats.maintenance_count == 2

    def test_maintenance_failure_is_logged(self):
        """A failing maintenance pass does not raise."""
        scheduler = DaemonScheduler()
        scheduler.set_maintenance_callback(MagicMock(side_effect=OSError("disk")))
        scheduler._run_maintenance_if_due()
        assert scheduler.stats.last_error == "disk"
        assert scheduler.stats.maintenance_count == 0


class TestDaemonSchedulerRun:
    """Tests for the scheduler loop."""

    def test_run_ticks_immediately_and_stops(self, tmp_path):
        """run() ticks at start, honours stop() and removes the PID file."""
        pid_file = tmp_path / "daemon.pid"
        scheduler = DaemonScheduler(interval=3600, pid_file=pid_file)

        def tick():
            assert pid_file.exists()
            scheduler.stop()
            return 2

        maintenance = MagicMock()
        scheduler.set_tick_callback(tick)
        scheduler.set_maintenance_callback(maintenance)

        scheduler.run()

        assert scheduler.stats.tick_count == 1
        assert scheduler.stats.jobs_enqueued == 2
        maintenance.assert_called_once()
        assert not pid_file.exists()
        assert scheduler.is_running() is False

    def test_run_without_initial_tick(self, tmp_path):
        """With run_immediately=False the first tick waits for the interval."""
        scheduler = DaemonScheduler(
            interval=5, pid_file=tmp_path / "daemon.pid", run_immediately=False
        )
        tick = MagicMock(return_value=0)
        scheduler.set_tick_callback(tick)

        with patch.object(
            scheduler, "_sleep_interruptible", side_effect=[True, False]
        ) as mock_sleep:
            scheduler.run()

        assert tick.call_count == 1
        mock_sleep.assert_called_with(5)

    def test_run_refuses_second_instance(self, tmp_path):
        """A live PID file stops a second daemon from starting."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text(str(os.getpid()))
        scheduler = DaemonScheduler(pid_file=pid_file)

        with pytest.raises(DaemonAlreadyRunningError):
            scheduler.run()


class TestDaemonSchedulerSignalHandling:
    """Tests for signal handling in DaemonScheduler."""

    def test_signal_handler_sets_shutdown_flag(self):
        """Test that SIGTERM and SIGINT request shutdown."""
        for signum in (signal.SIGTERM, signal.SIGINT):
            scheduler = DaemonScheduler()
            scheduler._signal_handler(signum, None)
            assert scheduler._shutdown_requested is True

    def test_restore_signal_handlers(self):
        """Test _restore_signal_handlers restores original handlers."""
        scheduler = DaemonScheduler()
        original_sigterm = signal.getsignal(signal.SIGTERM)
        original_sigint = signal.getsignal(signal.SIGINT)

        scheduler._setup_signal_handlers()
        scheduler._restore_signal_handlers()

        assert signal.getsignal(signal.SIGTERM) == original_sigterm
        assert signal.getsignal(signal.SIGINT) == original_sigint

    def test_sleep_interruptible_stops_on_shutdown(self):
        """Test _sleep_interruptible returns at once when shutdown requested."""
        scheduler = DaemonScheduler()
        scheduler._shutdown_requested = True
        assert scheduler._sleep_interruptible(10) is False


class TestDaemonSchedulerClassMethods:
    """Tests for class methods of DaemonScheduler."""

    def test_get_running_pid_no_file(self, tmp_path):
        """Test get_running_pid returns None when no PID file."""
        assert DaemonScheduler.get_running_pid(tmp_path / "missing.pid") is None

    def test_get_running_pid_stale_file(self, tmp_path):
        """Test get_running_pid returns None for stale PID file."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text("99999999")
        with patch.object(PIDFileManager, "_is_process_running", return_value=False):
            assert DaemonScheduler.get_running_pid(pid_file) is None

    def test_get_running_pid_with_running_process(self, tmp_path):
        """Test get_running_pid returns PID for running process."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text(str(os.getpid()))
        assert DaemonScheduler.get_running_pid(pid_file) == os.getpid()

    def test_stop_running_daemon_no_daemon(self, tmp_path):
        """Test stop_running_daemon returns False when no daemon."""
        assert DaemonScheduler.stop_running_daemon(tmp_path / "missing.pid") is False

    def test_stop_running_daemon_sends_signal(self, tmp_path):
        """Test stop_running_daemon sends SIGTERM to daemon."""
        pid_file = tmp_path / "daemon.pid"
        pid_file.write_text("12345")

        with patch("os.kill") as mock_kill, patch.object(
            PIDFileManager, "_is_process_running", return_value=True
        ):
            result = DaemonScheduler.stop_running_daemon(pid_file)

        assert result is True
        mock_kill.assert_called_once_with(12345, signal.SIGTERM)


class TestDaemonErrors:
    """Tests for daemon exception classes."""

    def test_error_hierarchy(self):
        """PID and already-running errors are DaemonErrors."""
        assert issubclass(PIDFileError, DaemonError)
        assert issubclass(DaemonAlreadyRunningError, DaemonError)
        assert issubclass(DaemonError, Exception)
