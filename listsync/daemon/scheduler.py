"""
Daemon scheduler for unattended contact list synchronization.

Provides a DaemonScheduler class that manages:
- Scheduler ticks at a configurable interval (hourly by default)
- A daily maintenance pass (job retention pruning)
- Signal handling for graceful shutdown (SIGTERM/SIGINT)
- PID file management for daemon control
"""

from __future__ import annotations

import logging
import os
import signal
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from listsync.utils.paths import DEFAULT_CONFIG_DIR

logger = logging.getLogger(__name__)


# Default PID file location
DEFAULT_PID_DIR = DEFAULT_CONFIG_DIR
DEFAULT_PID_FILE = DEFAULT_PID_DIR / "daemon.pid"

# Maintenance (retention pruning) runs once a day
DEFAULT_MAINTENANCE_INTERVAL = 86400


class DaemonError(Exception):
    """Base exception for daemon-related errors."""

    pass


class PIDFileError(DaemonError):
    """Raised when PID file operations fail."""

    pass


class DaemonAlreadyRunningError(DaemonError):
    """Raised when attempting to start a daemon that is already running."""

    pass


@dataclass
class DaemonStats:
    """
    Statistics from daemon operation.

    Tracks daemon uptime, scheduler ticks and maintenance passes.
    """

    started_at: datetime = field(default_factory=datetime.now)
    tick_count: int = 0
    tick_error_count: int = 0
    jobs_enqueued: int = 0
    last_tick_at: datetime | None = None
    last_error: str | None = None
    maintenance_count: int = 0
    last_maintenance_at: datetime | None = None


class PIDFileManager:
    """
    Manages the PID file of the daemon process.

    Provides methods to create, read, and remove PID files for
    daemon process management and duplicate prevention.
    """

    def __init__(self, pid_file: Path | None = None):
        """
        Initialize the PID file manager.

        Args:
            pid_file: Path to the PID file. Defaults to ~/.listsync/daemon.pid
        """
        self.pid_file = pid_file or DEFAULT_PID_FILE

    def create(self) -> None:
        """
        Create the PID file with the current process ID.

        Raises:
            PIDFileError: If the PID file cannot be created.
            DaemonAlreadyRunningError: If a daemon is already running.
        """
        existing_pid = self.read()
        if existing_pid is not None:
            if self._is_process_running(existing_pid):
                raise DaemonAlreadyRunningError(
                    f"Daemon already running with PID {existing_pid}"
                )
            logger.warning(
                f"Removing stale PID file (process {existing_pid} not running)"
            )
            self.remove()

        try:
            self.pid_file.parent.mkdir(parents=True, exist_ok=True)
            pid = os.getpid()
            self.pid_file.write_text(str(pid))
            logger.debug(f"Created PID file: {self.pid_file} (PID: {pid})")
        except OSError as e:
            raise PIDFileError(f"Failed to create PID file {self.pid_file}: {e}") from e

    def read(self) -> int | None:
        """
        Read the PID from the PID file.

        Returns:
            The PID stored in the file, or None if the file doesn't exist.

        Raises:
            PIDFileError: If the PID file exists but cannot be read or parsed.
        """
        if not self.pid_file.exists():
            return None

        content = ""
        try:
            content = self.pid_file.read_text().strip()
            return int(content)
        except ValueError as e:
            raise PIDFileError(f"Invalid PID in file {self.pid_file}: {content}") from e
        except OSError as e:
            raise PIDFileError(f"Failed to read PID file {self.pid_file}: {e}") from e

    def remove(self) -> None:
        """
        Remove the PID file. Does nothing if the file doesn't exist.

        Raises:
            PIDFileError: If the PID file exists but cannot be removed.
        """
        if not self.pid_file.exists():
            return

        try:
            self.pid_file.unlink()
            logger.debug(f"Removed PID file: {self.pid_file}")
        except OSError as e:
            raise PIDFileError(f"Failed to remove PID file {self.pid_file}: {e}") from e

    def _is_process_running(self, pid: int) -> bool:
        try:
            # Signal 0 only checks that the process exists
            os.kill(pid, 0)
            return True
        except ProcessLookupError:
            return False
        except PermissionError:
            return True


class DaemonScheduler:
    """
    Long-running scheduler loop.

    Calls the tick callback every ``interval`` seconds (and once at start
    when ``run_immediately`` is set) and the maintenance callback every
    ``maintenance_interval`` seconds. Errors raised by either callback are
    logged and counted; they never stop the loop.

    Usage:
        scheduler = DaemonScheduler(interval=3600)
        scheduler.set_tick_callback(lambda: service.tick())
        scheduler.set_maintenance_callback(lambda: queue.prune())
        scheduler.run()  # blocks until SIGTERM/SIGINT

    Attributes:
        interval: Tick interval in seconds
        maintenance_interval: Maintenance interval in seconds
        pid_file: Path to PID file
        stats: Daemon statistics
    """

    def __init__(
        self,
        interval: int = 3600,
        pid_file: Path | None = None,
        run_immediately: bool = True,
        maintenance_interval: int = DEFAULT_MAINTENANCE_INTERVAL,
    ):
        """
        Initialize the daemon scheduler.

        Args:
            interval: Tick interval in seconds (default: 3600 = 1 hour)
            pid_file: Path to PID file. Defaults to ~/.listsync/daemon.pid
            run_immediately: If True, tick once on start before waiting
            maintenance_interval: Seconds between maintenance passes
        """
        self.interval = interval
        self.maintenance_interval = maintenance_interval
        self.run_immediately = run_immediately
        self._pid_manager = PIDFileManager(pid_file)
        self._tick_callback: Callable[[], int] | None = None
        self._maintenance_callback: Callable[[], object] | None = None
        self._running = False
        self._shutdown_requested = False
        self._original_sigterm_handler: signal.Handlers | None = None  # type: ignore[assignment]
        self._original_sigint_handler: signal.Handlers | None = None  # type: ignore[assignment]
        self._next_maintenance_at = 0.0
        self.stats = DaemonStats()

    @property
    def pid_file(self) -> Path:
        """Get the PID file path."""
        return self._pid_manager.pid_file

    def set_tick_callback(self, callback: Callable[[], int]) -> None:
        """
        Set the function executed on every tick.

        Args:
            callback: Function returning the number of jobs it enqueued.
        """
        self._tick_callback = callback

    def set_maintenance_callback(self, callback: Callable[[], object]) -> None:
        """Set the function executed once per maintenance interval."""
        self._maintenance_callback = callback

    def _setup_signal_handlers(self) -> None:
        self._original_sigterm_handler = signal.signal(  # type: ignore[assignment]
            signal.SIGTERM, self._signal_handler
        )
        self._original_sigint_handler = signal.signal(  # type: ignore[assignment]
            signal.SIGINT, self._signal_handler
        )
        logger.debug("Signal handlers installed for SIGTERM and SIGINT")

    def _restore_signal_handlers(self) -> None:
        if self._original_sigterm_handler is not None:
            signal.signal(signal.SIGTERM, self._original_sigterm_handler)
        if self._original_sigint_handler is not None:
            signal.signal(signal.SIGINT, self._original_sigint_handler)
        logger.debug("Signal handlers restored")

    def _signal_handler(self, signum: int, frame: object) -> None:
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name}, initiating graceful shutdown...")
        self._shutdown_requested = True

    def _run_tick(self) -> bool:
        """
        Execute the tick callback and update statistics.

        Returns:
            True if the tick succeeded, False otherwise.
        """
        if self._tick_callback is None:
            logger.warning("No tick callback configured, skipping tick")
            return False

        self.stats.tick_count += 1
        self.stats.last_tick_at = datetime.now()

        try:
            logger.info(f"Starting scheduler tick (cycle #{self.stats.tick_count})")
            enqueued = self._tick_callback()
            self.stats.jobs_enqueued += enqueued
            self.stats.last_error = None
            logger.info(f"Scheduler tick enqueued {enqueued} job(s)")
            return True
        except Exception as e:
            self.stats.tick_error_count += 1
            self.stats.last_error = str(e)
            logger.error(f"Scheduler tick failed: {e}")
            return False

    def _run_maintenance_if_due(self) -> None:
        if self._maintenance_callback is None:
            return
        now = time.time()
        if now < self._next_maintenance_at:
            return
        self._next_maintenance_at = now + self.maintenance_interval

        try:
            logger.info("Running daily maintenance")
            self._maintenance_callback()
            self.stats.maintenance_count += 1
            self.stats.last_maintenance_at = datetime.now()
        except Exception as e:
            self.stats.last_error = str(e)
            logger.error(f"Maintenance failed: {e}")

    def _sleep_interruptible(self, seconds: int) -> bool:
        """
        Sleep for the given duration, checking for shutdown every second.

        Uses wall-clock time so a suspended host ticks on schedule after wake.

        Returns:
            True if sleep completed normally, False if interrupted by shutdown.
        """
        end_time = time.time() + seconds
        while time.time() < end_time and not self._shutdown_requested:
            remaining = end_time - time.time()
            sleep_time = min(1.0, max(0, remaining))
            if sleep_time > 0:
                time.sleep(sleep_time)

        return not self._shutdown_requested

    def run(self) -> None:
        """
        Run the daemon scheduler.

        Blocks until a shutdown signal is received.

        Raises:
            DaemonError: If daemon initialization fails.
            DaemonAlreadyRunningError: If another daemon is already running.
        """
        logger.info(f"Starting daemon scheduler (interval: {self.interval}s)")

        self._pid_manager.create()
        logger.info(f"Daemon started (PID: {os.getpid()}, PID file: {self.pid_file})")

        self._setup_signal_handlers()

        self._running = True
        self._shutdown_requested = False
        self._next_maintenance_at = 0.0
        self.stats = DaemonStats()

        try:
            self._run_maintenance_if_due()
            if self.run_immediately:
                self._run_tick()

            while not self._shutdown_requested:
                logger.debug(f"Sleeping for {self.interval} seconds until next tick")
                if not self._sleep_interruptible(self.interval):
                    break

                self._run_maintenance_if_due()
                if not self._shutdown_requested:
                    self._run_tick()

        finally:
            self._running = False
            self._restore_signal_handlers()
            self._pid_manager.remove()
            logger.info("Daemon scheduler stopped")

    def stop(self) -> None:
        """
        Request daemon shutdown.

        Safe to call from a callback or another thread.
        """
        logger.info("Stop requested")
        self._shutdown_requested = True

    def is_running(self) -> bool:
        return self._running

    @classmethod
    def get_running_pid(cls, pid_file: Path | None = None) -> int | None:
        """
        Get the PID of the currently running daemon.

        Returns:
            PID if a daemon is running, None otherwise.
        """
        manager = PIDFileManager(pid_file)
        pid = manager.read()

        if pid is None:
            return None

        if manager._is_process_running(pid):
            return pid

        return None

    @classmethod
    def stop_running_daemon(cls, pid_file: Path | None = None) -> bool:
        """
        Send SIGTERM to the running daemon.

        Returns:
            True if the signal was sent, False if no daemon is running.
        """
        pid = cls.get_running_pid(pid_file)

        if pid is None:
            logger.info("No running daemon found")
            return False

        try:
            os.kill(pid, signal.SIGTERM)
            logger.info(f"Sent SIGTERM to daemon (PID: {pid})")
            return True
        except ProcessLookupError:
            logger.warning(f"Daemon process {pid} not found")
            return False
        except PermissionError:
            logger.error(f"Permission denied sending signal to PID {pid}")
            return False


__all__ = [
    "DaemonScheduler",
    "DaemonStats",
    "DaemonError",
    "PIDFileError",
    "DaemonAlreadyRunningError",
    "PIDFileManager",
    "DEFAULT_PID_DIR",
    "DEFAULT_PID_FILE",
    "DEFAULT_MAINTENANCE_INTERVAL",
]
