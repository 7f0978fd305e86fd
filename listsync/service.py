"""
SyncService: the wired-up sync engine.

Builds the database, job queue, connector registry, job handler, scheduler
and worker pool from Settings, and exposes the collaborator interface:

    enqueue_sync(integration_id, sync_id=None) -> Job
    get_last_result(integration_id, sync_id=None) -> SyncCounts | None
    tick(provider=None) -> int
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from listsync.config.integration_config import ProviderType, SyncCounts
from listsync.config.settings import Settings
from listsync.connectors.registry import ConnectorRegistry
from listsync.jobs.queue import Job, JobQueue
from listsync.jobs.worker import WorkerPool
from listsync.storage.db import SyncDatabase
from listsync.sync.engine import SyncJobHandler
from listsync.sync.scheduler import SyncScheduler
from listsync.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


class SyncService:
    """
    Facade over the sync engine components.

    Usage:
        service = SyncService.from_settings(settings)
        service.tick()
        service.run_worker(once=True)

    Attributes:
        settings: Application settings
        db: Sync configuration and contact store
        queue: Job queue
        registry: Connector registry
        handler: Job handler
        scheduler: Job scheduler
    """

    def __init__(
        self,
        settings: Settings,
        db: SyncDatabase,
        registry: ConnectorRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.db = db
        self.registry = registry or ConnectorRegistry(http_timeout=settings.http_timeout)
        self.queue = JobQueue(
            db,
            max_attempts=settings.job_max_attempts,
            backoff_delay=settings.job_backoff_delay,
            completed_retention_days=settings.completed_job_retention_days,
            failed_retention_days=settings.failed_job_retention_days,
            clock=clock,
        )
        self.handler = SyncJobHandler(
            db,
            self.registry,
            batch_size=settings.batch_size,
            lock_enabled=settings.sync_lock_enabled,
            lock_ttl=settings.sync_lock_ttl,
            clock=clock,
        )
        self.scheduler = SyncScheduler(db, self.queue)

    @classmethod
    def from_settings(
        cls, settings: Settings, registry: ConnectorRegistry | None = None
    ) -> SyncService:
        """Open (and initialize) the configured database and wire the engine."""
        db = SyncDatabase(settings.db_path)
        db.initialize()
        return cls(settings, db, registry=registry)

    # =========================================================================
    # Collaborator Interface
    # =========================================================================

    def enqueue_sync(self, integration_id: str, sync_id: str | None = None) -> Job:
        return self.scheduler.enqueue_sync(integration_id, sync_id)

    def get_last_result(
        self, integration_id: str, sync_id: str | None = None
    ) -> Optional[SyncCounts]:
        return self.scheduler.get_last_result(integration_id, sync_id)

    def tick(self, provider: ProviderType | None = None) -> int:
        return self.scheduler.tick(provider)

    # =========================================================================
    # Operations
    # =========================================================================

    def prune(self, vacuum: bool = False) -> int:
        """
        Apply job retention.

        Args:
            vacuum: Reclaim the freed space when any job was removed
        """
        removed = self.queue.prune()
        if vacuum and removed:
            self.db.vacuum()
        return removed

    def recover_stale_jobs(self) -> int:
        """Return jobs left active by a dead worker to the queue."""
        return self.queue.requeue_stale(self.settings.sync_lock_ttl)

    def create_worker_pool(self, concurrency: int | None = None) -> WorkerPool:
        return WorkerPool(
            self.queue,
            self.handler,
            concurrency=concurrency or self.settings.worker_concurrency,
            poll_interval=self.settings.worker_poll_interval,
        )

    def run_worker(self, once: bool = False, concurrency: int | None = None) -> int:
        """
        Execute queued jobs.

        Args:
            once: Drain the jobs currently due and return instead of polling
            concurrency: Worker threads (default: settings.worker_concurrency)

        Returns:
            Number of job attempts executed (0 when polling until stopped)
        """
        self.recover_stale_jobs()
        pool = self.create_worker_pool(concurrency)
        if once:
            return pool.run_once()
        pool.run_forever()
        return pool.processed_count + pool.failed_count
