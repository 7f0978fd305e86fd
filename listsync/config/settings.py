"""
Typed application settings built from the YAML configuration dictionary.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from listsync.config.loader import ConfigError
from listsync.daemon.interval import parse_interval
from listsync.utils.paths import resolve_db_path

DEFAULT_BATCH_SIZE = 100
DEFAULT_SYNC_INTERVAL = "1h"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_DELAY = 5.0  # seconds
DEFAULT_COMPLETED_RETENTION_DAYS = 7
DEFAULT_FAILED_RETENTION_DAYS = 30
DEFAULT_WORKER_CONCURRENCY = 4
DEFAULT_WORKER_POLL_INTERVAL = 1.0  # seconds
DEFAULT_HTTP_TIMEOUT = 30.0  # seconds
DEFAULT_SYNC_LOCK_TTL = "1h"
DEFAULT_LOG_RETENTION_COUNT = 10


@dataclass
class Settings:
    """
    Application settings.

    Attributes:
        db_path: SQLite database path (or ':memory:')
        batch_size: Contacts per bulk upsert
        sync_interval: Seconds between scheduler ticks
        run_immediately: Tick once at process start
        job_max_attempts: Attempts per job, first run included
        job_backoff_delay: Base retry delay in seconds (doubles per retry)
        completed_job_retention_days: Days completed jobs are kept
        failed_job_retention_days: Days failed jobs are kept
        worker_concurrency: Worker threads in the pool
        worker_poll_interval: Seconds between queue polls when idle
        http_timeout: Provider HTTP timeout in seconds
        sync_lock_enabled: Use the per-sync in-flight marker
        sync_lock_ttl: Seconds before an in-flight marker expires
    """

    db_path: str = ":memory:"
    batch_size: int = DEFAULT_BATCH_SIZE
    sync_interval: int = 3600
    run_immediately: bool = True
    job_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    job_backoff_delay: float = DEFAULT_BACKOFF_DELAY
    completed_job_retention_days: int = DEFAULT_COMPLETED_RETENTION_DAYS
    failed_job_retention_days: int = DEFAULT_FAILED_RETENTION_DAYS
    worker_concurrency: int = DEFAULT_WORKER_CONCURRENCY
    worker_poll_interval: float = DEFAULT_WORKER_POLL_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    sync_lock_enabled: bool = True
    sync_lock_ttl: int = 3600
    log_dir: Path | None = None
    log_retention_count: int = DEFAULT_LOG_RETENTION_COUNT
    daemon_pid_file: Path | None = None

    @classmethod
    def from_dict(cls, config: dict[str, Any], config_dir: Path) -> Settings:
        """
        Build settings from a validated configuration dictionary.

        Args:
            config: Dictionary returned by ConfigLoader.load_and_validate()
            config_dir: Directory relative paths are resolved against

        Raises:
            ConfigError: If an interval value cannot be parsed
        """
        try:
            sync_interval = parse_interval(
                config.get("sync_interval", DEFAULT_SYNC_INTERVAL)
            )
            sync_lock_ttl = parse_interval(
                config.get("sync_lock_ttl", DEFAULT_SYNC_LOCK_TTL)
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e

        log_dir = config.get("log_dir")
        pid_file = config.get("daemon_pid_file")

        return cls(
            db_path=resolve_db_path(config.get("db_path"), config_dir),
            batch_size=config.get("batch_size", DEFAULT_BATCH_SIZE),
            sync_interval=sync_interval,
            run_immediately=config.get("run_immediately", True),
            job_max_attempts=config.get("job_max_attempts", DEFAULT_MAX_ATTEMPTS),
            job_backoff_delay=float(
                config.get("job_backoff_delay", DEFAULT_BACKOFF_DELAY)
            ),
            completed_job_retention_days=config.get(
                "completed_job_retention_days", DEFAULT_COMPLETED_RETENTION_DAYS
            ),
            failed_job_retention_days=config.get(
                "failed_job_retention_days", DEFAULT_FAILED_RETENTION_DAYS
            ),
            worker_concurrency=config.get(
                "worker_concurrency", DEFAULT_WORKER_CONCURRENCY
            ),
            worker_poll_interval=float(
                config.get("worker_poll_interval", DEFAULT_WORKER_POLL_INTERVAL)
            ),
            http_timeout=float(config.get("http_timeout", DEFAULT_HTTP_TIMEOUT)),
            sync_lock_enabled=config.get("sync_lock_enabled", True),
            sync_lock_ttl=sync_lock_ttl,
            log_dir=Path(log_dir).expanduser() if log_dir else None,
            log_retention_count=config.get(
                "log_retention_count", DEFAULT_LOG_RETENTION_COUNT
            ),
            daemon_pid_file=Path(pid_file).expanduser() if pid_file else None,
        )
