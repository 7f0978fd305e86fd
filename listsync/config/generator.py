"""
Configuration file generator for listsync.

Provides functionality to generate a default configuration file with
documentation for all available options.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# listsync Configuration
# ======================
#
# Save as ~/.listsync/config.yaml (or pass --config-file).
# Every option is commented out and shows its default value.

# Storage
# -------

# SQLite database holding integrations, contacts and the job queue.
# Relative paths are resolved against the configuration directory.
# Default: listsync.db
# db_path: listsync.db


# Sync Engine
# -----------

# Number of contacts written per bulk upsert
# Default: 100
# batch_size: 100

# Timeout for provider HTTP calls, in seconds
# Default: 30
# http_timeout: 30


# Scheduler
# ---------

# Interval between scheduler ticks ('30s', '5m', '1h', '1d' or seconds)
# Default: 1h
# sync_interval: 1h

# Run one tick immediately when the daemon starts
# Default: true
# run_immediately: true


# Job Queue
# ---------

# Attempts per job, first run included
# Default: 3
# job_max_attempts: 3

# Base retry delay in seconds; doubles on every retry
# Default: 5
# job_backoff_delay: 5

# Days to keep completed and failed jobs
# Defaults: 7 and 30
# completed_job_retention_days: 7
# failed_job_retention_days: 30

# Skip a job when another job for the same sync is still running
# Default: true
# sync_lock_enabled: true

# Lifetime of the in-flight marker ('30m', '1h', ...)
# Default: 1h
# sync_lock_ttl: 1h


# Worker Pool
# -----------

# Number of jobs executed concurrently
# Default: 4
# worker_concurrency: 4

# Seconds between queue polls when no job is due
# Default: 1
# worker_poll_interval: 1


# Logging
# -------

# Enable verbose output with detailed logging
# Default: false
# verbose: false

# Directory for log files
# Default: ~/.listsync/logs
# log_dir: ~/.listsync/logs

# Number of daily log files to keep (0 disables cleanup)
# Default: 10
# log_retention_count: 10


# Daemon
# ------

# PID file used by 'listsync daemon start/stop/status'
# Default: ~/.listsync/daemon.pid
# daemon_pid_file: ~/.listsync/daemon.pid
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save the default configuration file to the given path.

    Creates parent directories if they don't exist and writes the file
    with owner-only permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite an existing file

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
