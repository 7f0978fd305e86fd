"""
listsync.daemon - Daemon and scheduler module

Long-running scheduler process with configurable tick intervals, a daily
maintenance pass and signal handling.
"""

from listsync.daemon.interval import parse_interval
from listsync.daemon.scheduler import (
    DEFAULT_MAINTENANCE_INTERVAL,
    DEFAULT_PID_DIR,
    DEFAULT_PID_FILE,
    DaemonAlreadyRunningError,
    DaemonError,
    DaemonScheduler,
    DaemonStats,
    PIDFileError,
    PIDFileManager,
)

__all__ = [
    "parse_interval",
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
