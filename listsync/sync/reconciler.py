"""
Reconciler: idempotent batched upsert of contact candidates.

Raw records are projected through the field mapper, grouped into batches of
UpsertOperations and written with one bulk upsert per batch. Every raw record
is accounted for exactly once in the returned SyncCounts:

    imported_count + updated_count + skipped_count == total_count

- imported: the upsert inserted a new contact
- updated:  the upsert changed an existing contact
- skipped:  unusable email, unchanged existing contact, or (identity
            provider with incremental skip) an enabled account already in
            the list and not refreshed since the last sync
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from listsync.config.integration_config import SyncCounts
from listsync.storage.db import SyncDatabase, UpsertOperation
from listsync.sync.contact import ContactCandidate
from listsync.sync.errors import BatchWriteError
from listsync.sync.mapper import FieldMapper
from listsync.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

# Contact status values written by the sync engine
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"

BatchCallback = Callable[[int, SyncCounts], None]


@dataclass
class ReconcileTarget:
    """
    Where and how candidates are written.

    Attributes:
        list_id: Target contact list
        brand_id: Brand owning the list
        user_id: User owning the list
        identity: Apply the identity-provider status policy
        incremental_since: Skip candidates not modified after this time
    """

    list_id: str
    brand_id: str
    user_id: str
    identity: bool = False
    incremental_since: Optional[datetime] = None


class Reconciler:
    """
    Batches candidates and upserts them into the contact store.

    Usage:
        reconciler = Reconciler(db, batch_size=100)
        counts = reconciler.reconcile(stream, FieldMapper(mapping), target)

    Attributes:
        db: Contact store
        batch_size: Operations per bulk upsert
        clock: Returns the timestamp written as updatedAt/createdAt
    """

    def __init__(
        self,
        db: SyncDatabase,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.db = db
        self.batch_size = batch_size
        self._clock = clock

    def build_operation(
        self, candidate: ContactCandidate, target: ReconcileTarget
    ) -> UpsertOperation:
        """
        Build the upsert for one candidate.

        New contacts start out active. Existing contacts keep their status,
        except that a disabled identity-provider account forces inactive.
        """
        set_fields: dict[str, Any] = {
            "brand_id": target.brand_id,
            "user_id": target.user_id,
            "first_name": candidate.first_name,
            "last_name": candidate.last_name,
            "phone": candidate.phone,
        }
        if target.identity and candidate.disabled:
            set_fields["status"] = STATUS_INACTIVE

        return UpsertOperation(
            email=candidate.email,
            list_id=target.list_id,
            set_fields=set_fields,
            on_insert={"status": STATUS_ACTIVE},
            updated_at=self._clock(),
        )

    def _is_stale(self, candidate: ContactCandidate, target: ReconcileTarget) -> bool:
        """Unrefreshed since the last sync; disabled accounts are never stale."""
        return (
            target.incremental_since is not None
            and not candidate.disabled
            and candidate.last_modified is not None
            and candidate.last_modified <= target.incremental_since
        )

    def _drop_known_stale(
        self,
        pending: list[tuple[UpsertOperation, bool]],
        target: ReconcileTarget,
        counts: SyncCounts,
        batch_number: int,
    ) -> list[UpsertOperation]:
        """
        Drop stale operations for contacts the list already holds.

        Stale candidates missing from the list are still written.
        """
        stale_emails = [op.email for op, stale in pending if stale]
        known: set[str] = set()
        if stale_emails:
            try:
                known = self.db.existing_emails(target.list_id, stale_emails)
            except sqlite3.Error as e:
                raise BatchWriteError(
                    f"Existence lookup for batch {batch_number} failed: {e}",
                    batch_number=batch_number,
                    batch_size=len(pending),
                ) from e

        batch = []
        for op, stale in pending:
            if stale and op.email in known:
                counts.skipped_count += 1
                continue
            batch.append(op)
        return batch

    def _write_batch(
        self, batch: list[UpsertOperation], batch_number: int, counts: SyncCounts
    ) -> None:
        try:
            result = self.db.bulk_upsert_contacts(batch)
        except sqlite3.Error as e:
            raise BatchWriteError(
                f"Bulk upsert of batch {batch_number} ({len(batch)} contacts) "
                f"failed: {e}",
                batch_number=batch_number,
                batch_size=len(batch),
            ) from e

        counts.imported_count += result.upserted
        counts.updated_count += result.modified
        counts.skipped_count += result.unchanged
        logger.debug(
            f"Batch {batch_number}: {result.upserted} inserted, "
            f"{result.modified} updated, {result.unchanged} unchanged"
        )

    def reconcile(
        self,
        records: Iterable[dict[str, Any]],
        mapper: FieldMapper,
        target: ReconcileTarget,
        on_batch: BatchCallback | None = None,
    ) -> SyncCounts:
        """
        Upsert every usable record into the target list.

        Batches are written in order; a failing batch aborts the run and
        leaves earlier batches committed.

        Args:
            records: Raw provider records (consumed once)
            mapper: Field mapper for the TableSync
            target: Target list and write policy
            on_batch: Called after each committed batch with the batch
                number and the running counts

        Returns:
            Aggregated SyncCounts

        Raises:
            BatchWriteError: If a bulk upsert fails
        """
        counts = SyncCounts()
        pending: list[tuple[UpsertOperation, bool]] = []
        batch_number = 0

        def flush() -> None:
            nonlocal pending, batch_number
            if not pending:
                return
            batch_number += 1
            batch = self._drop_known_stale(pending, target, counts, batch_number)
            pending = []
            if batch:
                self._write_batch(batch, batch_number, counts)
            if on_batch is not None:
                on_batch(batch_number, counts)

        for record in records:
            counts.total_count += 1
            candidate = mapper.project(record)
            if not isinstance(candidate, ContactCandidate):
                counts.skipped_count += 1
                continue

            operation = self.build_operation(candidate, target)
            pending.append((operation, self._is_stale(candidate, target)))
            if len(pending) >= self.batch_size:
                flush()

        flush()
        logger.debug(f"Reconciled list {target.list_id}: {counts.summary()}")
        return counts
