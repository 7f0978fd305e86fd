"""
Sync job handler.

Executes one queued sync job end to end:

    preconditions -> connector.fetch -> field mapper -> reconciler
        -> persist result on the TableSync -> recount the contact list

Configuration problems raise ConfigurationError (never retried). Provider
and write failures propagate as TransientProviderError/BatchWriteError and
are retried by the job queue. Progress is reported at fixed checkpoints and
never decreases within a run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from listsync.config.integration_config import (
    IMPLICIT_SYNC_ID,
    FirebaseConfig,
    Integration,
    ProviderConfig,
    TableSync,
    parse_provider,
    parse_provider_config,
    parse_source,
)
from listsync.connectors.base import RecordStream
from listsync.connectors.registry import ConnectorRegistry
from listsync.jobs.queue import Job
from listsync.storage.db import ContactList, SyncDatabase
from listsync.sync.errors import ConfigurationError
from listsync.sync.mapper import FieldMapper
from listsync.sync.reconciler import DEFAULT_BATCH_SIZE, ReconcileTarget, Reconciler
from listsync.utils.logging import JobLoggerAdapter, job_logger
from listsync.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

# Progress checkpoints
PROGRESS_FETCH_START = 10
PROGRESS_BATCH_CEILING = 80
PROGRESS_RESULT_SAVED = 90
PROGRESS_DONE = 100

TRIGGER_SCHEDULED = "scheduled"
TRIGGER_MANUAL = "manual"

# Result of a job that found another job syncing the same TableSync
IN_FLIGHT_RESULT = {"skipped": "in_flight"}

DEFAULT_LOCK_TTL = 3600  # seconds


class ProgressTracker:
    """
    Monotonic job progress.

    Values only ever move up. Batch progress is interpolated between the
    fetch-complete checkpoint and 80: proportionally to records read when the
    total is known, otherwise each batch closes half of the remaining gap.
    """

    def __init__(self, report: Callable[[int], Any]):
        self._report = report
        self.current = 0
        self.fetch_floor = PROGRESS_FETCH_START

    def report(self, value: int) -> None:
        value = max(0, min(PROGRESS_DONE, int(value)))
        if value <= self.current:
            return
        self.current = value
        self._report(value)

    def fetch_complete(self, checkpoint: int) -> None:
        self.fetch_floor = max(self.fetch_floor, checkpoint)
        self.report(checkpoint)

    def batch_done(self, records_read: int, total: int | None) -> None:
        if total:
            fraction = min(1.0, records_read / total)
            span = PROGRESS_BATCH_CEILING - self.fetch_floor
            value = self.fetch_floor + span * fraction
        else:
            value = self.current + (PROGRESS_BATCH_CEILING - self.current) / 2
        self.report(min(PROGRESS_BATCH_CEILING, int(value)))


class SyncJobHandler:
    """
    Runs sync jobs claimed from the job queue.

    Usage:
        handler = SyncJobHandler(db, ConnectorRegistry())
        pool = WorkerPool(queue, handler)

    Attributes:
        db: Sync configuration and contact store
        registry: Connector lookup by provider
        reconciler: Batched upsert writer
        lock_enabled: Skip jobs whose TableSync is already being synced
        lock_ttl: Lifetime of the in-flight marker in seconds
    """

    def __init__(
        self,
        db: SyncDatabase,
        registry: ConnectorRegistry,
        batch_size: int = DEFAULT_BATCH_SIZE,
        lock_enabled: bool = True,
        lock_ttl: int = DEFAULT_LOCK_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.registry = registry
        self.reconciler = Reconciler(db, batch_size=batch_size, clock=clock)
        self.lock_enabled = lock_enabled
        self.lock_ttl = lock_ttl
        self._clock = clock

    # =========================================================================
    # Worker Interface
    # =========================================================================

    def handle(self, job: Job, report_progress: Callable[[int], Any]) -> dict[str, Any]:
        """
        Execute one job attempt.

        Returns:
            Result document stored on the completed job

        Raises:
            ConfigurationError: If a precondition fails
            TransientProviderError: If the provider read fails
            BatchWriteError: If a bulk upsert fails
        """
        log = job_logger(
            __name__, job.integration_id, job.sync_id, job.attempts, job.max_attempts
        )

        if self.lock_enabled and not self.db.acquire_sync_lock(
            job.integration_id, job.sync_id, job.id, self.lock_ttl, now=self._clock()
        ):
            log.info("Another job is syncing this table, skipping")
            return dict(IN_FLIGHT_RESULT)

        try:
            return self._run(job, ProgressTracker(report_progress), log)
        except Exception as e:
            log.error(f"Sync attempt failed ({type(e).__name__}): {e}")
            raise
        finally:
            if self.lock_enabled:
                self.db.release_sync_lock(job.integration_id, job.sync_id, job.id)

    def on_failed(self, job: Job, error: BaseException) -> None:
        """
        Record a terminal failure on the TableSync.

        lastSyncedAt and lastSyncResult keep the values of the last
        successful run.
        """
        sync_id = job.sync_id or IMPLICIT_SYNC_ID
        self.db.record_sync_error(job.integration_id, sync_id, str(error))
        log = job_logger(
            __name__, job.integration_id, job.sync_id, job.attempts, job.max_attempts
        )
        log.error(f"Sync failed permanently: {error}")

    # =========================================================================
    # Preconditions
    # =========================================================================

    def _load_integration(self, job: Job) -> tuple[Integration, ProviderConfig]:
        integration = self.db.get_integration(job.integration_id)
        if integration is None:
            raise ConfigurationError(f"Integration not found: {job.integration_id}")
        if not integration.is_active:
            raise ConfigurationError(f"Integration {integration.id} is not active")

        expected = job.payload.get("provider")
        if expected and parse_provider(expected) is not integration.provider:
            raise ConfigurationError(
                f"Integration {integration.id} is a {integration.provider.value} "
                f"integration, expected {expected}"
            )

        config = parse_provider_config(integration.provider, integration.config)
        return integration, config

    def _resolve_table_sync(self, job: Job, integration: Integration) -> TableSync:
        table_sync = integration.find_sync(job.sync_id)
        if table_sync is None:
            raise ConfigurationError(
                f"Table sync configuration not found: {job.sync_id or IMPLICIT_SYNC_ID}"
            )
        if job.trigger == TRIGGER_SCHEDULED and not table_sync.auto_sync:
            raise ConfigurationError(f"Auto-sync is disabled for sync {table_sync.id}")
        if not table_sync.mapping.has_email():
            raise ConfigurationError(f"Sync {table_sync.id} has no email mapping")
        parse_source(integration.provider, table_sync.source)
        return table_sync

    def _resolve_contact_list(
        self,
        integration: Integration,
        table_sync: TableSync,
        log: JobLoggerAdapter,
    ) -> ContactList:
        if table_sync.create_new_list and table_sync.new_list_name.strip():
            contact_list = self.db.create_contact_list(
                integration.brand_id,
                integration.user_id,
                table_sync.new_list_name.strip(),
                description=(
                    f"Synced from {integration.provider.value} "
                    f"({integration.name or integration.id})"
                ),
            )
            self.db.repoint_sync_list(integration.id, table_sync.id, contact_list.id)
            table_sync.contact_list_id = contact_list.id
            table_sync.create_new_list = False
            table_sync.new_list_name = ""
            log.info(f"Created contact list '{contact_list.name}' ({contact_list.id})")
            return contact_list

        if not table_sync.contact_list_id:
            raise ConfigurationError(f"Sync {table_sync.id} has no target contact list")

        contact_list = self.db.get_contact_list(
            table_sync.contact_list_id, brand_id=integration.brand_id
        )
        if contact_list is None:
            raise ConfigurationError(
                f"Contact list not found: {table_sync.contact_list_id}"
            )
        return contact_list

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _run(
        self, job: Job, progress: ProgressTracker, log: JobLoggerAdapter
    ) -> dict[str, Any]:
        integration, config = self._load_integration(job)
        table_sync = self._resolve_table_sync(job, integration)
        previous_list_id = table_sync.contact_list_id
        contact_list = self._resolve_contact_list(integration, table_sync, log)

        connector = self.registry.get(integration.provider)
        started_at = self._clock()
        progress.report(PROGRESS_FETCH_START)
        log.info(
            f"Syncing {integration.provider.value} into list "
            f"'{contact_list.name}' ({contact_list.id})"
        )

        def on_fetch_complete(stream: RecordStream) -> None:
            log.debug(f"Fetch complete ({stream.total} record(s))")
            progress.fetch_complete(connector.fetch_complete_progress)

        stream = connector.fetch(integration, table_sync, on_fetch_complete)

        identity = integration.provider.has_implicit_sync
        incremental_since = None
        if (
            isinstance(config, FirebaseConfig)
            and config.incremental_skip
            and table_sync.last_synced_at is not None
            and contact_list.id == previous_list_id
        ):
            incremental_since = table_sync.last_synced_at

        target = ReconcileTarget(
            list_id=contact_list.id,
            brand_id=integration.brand_id,
            user_id=integration.user_id,
            identity=identity,
            incremental_since=incremental_since,
        )
        counts = self.reconciler.reconcile(
            stream,
            FieldMapper(table_sync.mapping, identity=identity),
            target,
            on_batch=lambda _number, _counts: progress.batch_done(
                stream.records_read, stream.total
            ),
        )

        self.db.record_sync_success(integration.id, table_sync.id, counts, started_at)
        progress.report(PROGRESS_RESULT_SAVED)

        contact_count = self.db.recount_contact_list(contact_list.id)
        progress.report(PROGRESS_DONE)

        log.info(f"Sync complete. {counts.summary()}. List size: {contact_count}")
        return {
            "integrationId": integration.id,
            "syncId": table_sync.id,
            "listId": contact_list.id,
            "contactCount": contact_count,
            **counts.to_dict(),
        }
