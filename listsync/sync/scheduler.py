"""
Sync scheduler: turns TableSync configuration into queued jobs.

tick() enqueues one job per auto-synced TableSync of every active
integration. enqueue_sync() is the manual trigger used by the CLI and
other collaborators; it bypasses the autoSync flag.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Optional

from listsync.config.integration_config import (
    IMPLICIT_SYNC_ID,
    Integration,
    ProviderType,
    SyncCounts,
)
from listsync.jobs.queue import Job, JobQueue, JobQueueError
from listsync.storage.db import SyncDatabase
from listsync.sync.engine import TRIGGER_MANUAL, TRIGGER_SCHEDULED
from listsync.sync.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Job key prefix per provider
JOB_KEY_PREFIXES = {
    ProviderType.AIRTABLE: "airtable",
    ProviderType.GOOGLE_SHEETS: "sheets",
    ProviderType.SUPABASE: "supabase",
    ProviderType.FIREBASE: "firebase",
}


def epoch_millis(value: datetime) -> int:
    """Milliseconds since the epoch for a naive UTC (or aware) datetime."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def make_job_key(
    provider: ProviderType,
    integration_id: str,
    sync_id: str | None,
    now: datetime,
) -> str:
    """
    Build a job key.

    Examples:
        airtable-sync-<integrationId>-<syncId>-<epochMillis>
        firebase-sync-<integrationId>-<epochMillis>
    """
    prefix = f"{JOB_KEY_PREFIXES[provider]}-sync-{integration_id}"
    if sync_id:
        prefix = f"{prefix}-{sync_id}"
    return f"{prefix}-{epoch_millis(now)}"


def build_payload(
    integration: Integration, sync_id: str | None, trigger: str
) -> dict[str, Any]:
    """Job payload for one TableSync; implicit syncs carry no syncId."""
    payload: dict[str, Any] = {
        "integrationId": integration.id,
        "provider": integration.provider.value,
        "trigger": trigger,
    }
    if sync_id is not None and not integration.provider.has_implicit_sync:
        payload["syncId"] = sync_id
    return payload


class SyncScheduler:
    """
    Enqueues sync jobs.

    Usage:
        scheduler = SyncScheduler(db, queue)
        enqueued = scheduler.tick()
        job = scheduler.enqueue_sync("integration-1", "tbl-sync-1")
    """

    def __init__(self, db: SyncDatabase, queue: JobQueue):
        self.db = db
        self.queue = queue

    def _enqueue(self, integration: Integration, sync_id: str | None, trigger: str) -> Job:
        payload = build_payload(integration, sync_id, trigger)
        job_key = make_job_key(
            integration.provider,
            integration.id,
            payload.get("syncId"),
            self.queue.now(),
        )
        return self.queue.enqueue(payload, job_key)

    def tick(self, provider: ProviderType | None = None) -> int:
        """
        Enqueue one job per auto-synced TableSync of every active integration.

        TableSyncs with autoSync off or without an email mapping are never
        enqueued. Failures for one integration are logged and the tick
        continues with the next.

        Args:
            provider: Restrict the tick to one provider

        Returns:
            Number of jobs enqueued
        """
        integrations = self.db.list_integrations(provider=provider, active_only=True)
        logger.info(f"Scheduler tick: {len(integrations)} active integration(s)")

        enqueued = 0
        for integration in integrations:
            for table_sync in integration.table_syncs:
                if not table_sync.auto_sync:
                    continue
                if not table_sync.mapping.has_email():
                    logger.warning(
                        f"Sync {table_sync.id} of integration {integration.id} "
                        "has no email mapping, not scheduling"
                    )
                    continue
                try:
                    job = self._enqueue(integration, table_sync.id, TRIGGER_SCHEDULED)
                except (JobQueueError, sqlite3.Error) as e:
                    logger.error(
                        f"Failed to enqueue sync {table_sync.id} of integration "
                        f"{integration.id}: {e}"
                    )
                    continue
                enqueued += 1
                logger.debug(f"Scheduled job {job.job_key}")

        logger.info(f"Scheduler tick enqueued {enqueued} job(s)")
        return enqueued

    def enqueue_sync(self, integration_id: str, sync_id: str | None = None) -> Job:
        """
        Manually trigger one sync, regardless of its autoSync flag.

        Args:
            integration_id: Integration to sync
            sync_id: TableSync to run (optional for identity integrations)

        Raises:
            ConfigurationError: If the integration or sync does not exist,
                is inactive, or has no email mapping
        """
        integration = self.db.get_integration(integration_id)
        if integration is None:
            raise ConfigurationError(f"Integration not found: {integration_id}")
        if not integration.is_active:
            raise ConfigurationError(f"Integration {integration_id} is not active")

        lookup_id = sync_id
        if integration.provider.has_implicit_sync and sync_id == IMPLICIT_SYNC_ID:
            lookup_id = None
        table_sync = integration.find_sync(lookup_id)
        if table_sync is None:
            raise ConfigurationError(
                f"Table sync configuration not found: {sync_id or '(none given)'}"
            )
        if not table_sync.mapping.has_email():
            raise ConfigurationError(f"Sync {table_sync.id} has no email mapping")

        job = self._enqueue(integration, table_sync.id, TRIGGER_MANUAL)
        logger.info(f"Enqueued manual sync {job.job_key}")
        return job

    def get_last_result(
        self, integration_id: str, sync_id: str | None = None
    ) -> Optional[SyncCounts]:
        """
        Counts of the last successful run of a TableSync.

        Returns:
            SyncCounts, or None if the sync never succeeded or does not exist
        """
        integration = self.db.get_integration(integration_id)
        if integration is None:
            return None
        if integration.provider.has_implicit_sync and sync_id == IMPLICIT_SYNC_ID:
            sync_id = None
        table_sync = integration.find_sync(sync_id)
        if table_sync is None:
            return None
        return table_sync.last_sync_result
