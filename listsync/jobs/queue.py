"""
Durable job queue backed by the listsync SQLite database.

Jobs move through four states:

    waiting --claim--> active --complete--> completed
                          |
                          +--fail (retryable, attempts left)--> waiting (run_at = now + backoff)
                          +--fail (otherwise)-----------------> failed

Retry delays grow exponentially: backoff_delay * 2 ** (attempts - 1).
Completed and failed jobs are kept for different retention periods and
removed by prune().
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from listsync.storage.db import SyncDatabase
from listsync.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_DELAY = 5.0  # seconds
DEFAULT_COMPLETED_RETENTION_DAYS = 7
DEFAULT_FAILED_RETENTION_DAYS = 30


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class JobQueueError(Exception):
    """Raised when a queue operation refers to an unknown or invalid job."""

    pass


@dataclass
class Job:
    """
    One queued sync job.

    The payload is ``{"integrationId": ..., "syncId": ..., "trigger": ...}``.
    """

    id: str
    job_key: str
    payload: dict[str, Any]
    state: JobState = JobState.WAITING
    attempts: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_delay: float = DEFAULT_BACKOFF_DELAY
    progress: int = 0
    run_at: datetime = field(default_factory=utcnow)
    last_error: str | None = None
    result: dict[str, Any] | None = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def integration_id(self) -> str:
        return str(self.payload.get("integrationId", ""))

    @property
    def sync_id(self) -> str | None:
        sync_id = self.payload.get("syncId")
        return str(sync_id) if sync_id is not None else None

    @property
    def trigger(self) -> str:
        return str(self.payload.get("trigger", "scheduled"))

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Job:
        return cls(
            id=row["id"],
            job_key=row["job_key"],
            payload=json.loads(row["payload"]),
            state=JobState(row["state"]),
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            backoff_delay=row["backoff_delay"],
            progress=row["progress"],
            run_at=row["run_at"],
            last_error=row["last_error"],
            result=json.loads(row["result"]) if row["result"] else None,
            created_at=row["created_at"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "jobKey": self.job_key,
            "payload": self.payload,
            "state": self.state.value,
            "attempts": self.attempts,
            "maxAttempts": self.max_attempts,
            "progress": self.progress,
            "runAt": self.run_at.isoformat() if self.run_at else None,
            "lastError": self.last_error,
            "result": self.result,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }


def retry_delay(backoff_delay: float, attempts: int) -> float:
    """
    Exponential backoff delay in seconds before the next attempt.

    Args:
        backoff_delay: Base delay in seconds
        attempts: Attempts made so far (1 after the first failure)
    """
    return backoff_delay * (2 ** max(0, attempts - 1))


class JobQueue:
    """
    SQLite job queue.

    Usage:
        queue = JobQueue(db)
        queue.enqueue({"integrationId": "abc", "trigger": "manual"}, "key-1")

        job = queue.claim_next()
        try:
            result = handler(job)
            queue.complete(job.id, result)
        except Exception as e:
            queue.fail(job, str(e), retryable=is_retryable(e))

    Attributes:
        db: Database holding the jobs table
        max_attempts: Attempts per job, first run included
        backoff_delay: Base retry delay in seconds
        completed_retention: How long completed jobs are kept
        failed_retention: How long failed jobs are kept
    """

    def __init__(
        self,
        db: SyncDatabase,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_delay: float = DEFAULT_BACKOFF_DELAY,
        completed_retention_days: int = DEFAULT_COMPLETED_RETENTION_DAYS,
        failed_retention_days: int = DEFAULT_FAILED_RETENTION_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.max_attempts = max_attempts
        self.backoff_delay = backoff_delay
        self.completed_retention = timedelta(days=completed_retention_days)
        self.failed_retention = timedelta(days=failed_retention_days)
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # Producer Operations
    # =========================================================================

    def enqueue(
        self,
        payload: dict[str, Any],
        job_key: str | None = None,
        run_at: datetime | None = None,
    ) -> Job:
        """
        Add a job to the queue.

        A job key that is already queued returns the existing job instead
        of adding a duplicate.

        Args:
            payload: Job payload (must carry integrationId)
            job_key: Unique job key; a random one is generated if omitted
            run_at: Earliest execution time (default: now)

        Returns:
            The queued job
        """
        if not payload.get("integrationId"):
            raise JobQueueError("Job payload requires integrationId")

        now = self.now()
        job = Job(
            id=uuid.uuid4().hex,
            job_key=job_key or uuid.uuid4().hex,
            payload=dict(payload),
            max_attempts=self.max_attempts,
            backoff_delay=self.backoff_delay,
            run_at=run_at or now,
            created_at=now,
        )

        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO jobs (
                    id, job_key, payload, state, attempts, max_attempts,
                    backoff_delay, progress, run_at, created_at
                ) VALUES (?, ?, ?, 'waiting', 0, ?, ?, 0, ?, ?)
                ON CONFLICT(job_key) DO NOTHING
                """,
                (
                    job.id,
                    job.job_key,
                    json.dumps(job.payload, sort_keys=True),
                    job.max_attempts,
                    job.backoff_delay,
                    job.run_at,
                    job.created_at,
                ),
            )
            if cursor.rowcount == 0:
                row = conn.execute(
                    "SELECT * FROM jobs WHERE job_key = ?", (job.job_key,)
                ).fetchone()
                logger.debug(f"Job {job.job_key} already queued")
                return Job.from_row(row)

        logger.debug(f"Enqueued job {job.job_key}")
        return job

    # =========================================================================
    # Consumer Operations
    # =========================================================================

    def claim_next(self) -> Optional[Job]:
        """
        Atomically claim the oldest due waiting job.

        The claimed job becomes active, its attempts counter is
        incremented and its progress reset to 0.

        Returns:
            The claimed job, or None if nothing is due
        """
        now = self.now()
        with self.db.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                """
                SELECT id FROM jobs
                WHERE state = 'waiting' AND run_at <= ?
                ORDER BY run_at, created_at
                LIMIT 1
                """,
                (now,),
            ).fetchone()
            if row is None:
                return None

            conn.execute(
                """
                UPDATE jobs SET
                    state = 'active',
                    attempts = attempts + 1,
                    progress = 0,
                    started_at = ?
                WHERE id = ?
                """,
                (now, row["id"]),
            )
            claimed = conn.execute(
                "SELECT * FROM jobs WHERE id = ?", (row["id"],)
            ).fetchone()
            return Job.from_row(claimed)

    def update_progress(self, job_id: str, progress: int) -> int:
        """
        Raise an active job's progress. Progress never decreases.

        Returns:
            The stored progress value
        """
        progress = max(0, min(100, int(progress)))
        with self.db.connection() as conn:
            conn.execute(
                """
                UPDATE jobs SET progress = MAX(progress, ?)
                WHERE id = ? AND state = 'active'
                """,
                (progress, job_id),
            )
            row = conn.execute(
                "SELECT progress FROM jobs WHERE id = ?", (job_id,)
            ).fetchone()
            if row is None:
                raise JobQueueError(f"Unknown job: {job_id}")
            stored: int = row["progress"]
            return stored

    def complete(self, job_id: str, result: dict[str, Any] | None = None) -> None:
        """Mark an active job as completed with progress 100."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE jobs SET
                    state = 'completed',
                    progress = 100,
                    result = ?,
                    last_error = NULL,
                    finished_at = ?
                WHERE id = ? AND state = 'active'
                """,
                (json.dumps(result) if result is not None else None, self.now(), job_id),
            )
            if cursor.rowcount == 0:
                raise JobQueueError(f"Job {job_id} is not active")

    def fail(self, job: Job, error: str, retryable: bool = True) -> bool:
        """
        Record a failed attempt.

        A retryable failure with attempts left puts the job back to
        waiting with an exponential backoff delay; anything else fails
        the job for good.

        Args:
            job: The job as returned by claim_next()
            error: Error message
            retryable: Whether the error class allows a retry

        Returns:
            True if a retry was scheduled, False if the job failed terminally
        """
        now = self.now()
        will_retry = retryable and job.attempts < job.max_attempts

        with self.db.connection() as conn:
            if will_retry:
                delay = retry_delay(job.backoff_delay, job.attempts)
                conn.execute(
                    """
                    UPDATE jobs SET state = 'waiting', run_at = ?, last_error = ?
                    WHERE id = ? AND state = 'active'
                    """,
                    (now + timedelta(seconds=delay), error, job.id),
                )
                logger.info(
                    f"Job {job.job_key} attempt {job.attempts}/{job.max_attempts} "
                    f"failed, retrying in {delay:g}s"
                )
            else:
                conn.execute(
                    """
                    UPDATE jobs SET state = 'failed', last_error = ?, finished_at = ?
                    WHERE id = ? AND state = 'active'
                    """,
                    (error, now, job.id),
                )
                logger.warning(
                    f"Job {job.job_key} failed after {job.attempts} attempt(s): {error}"
                )
        return will_retry

    # =========================================================================
    # Maintenance Operations
    # =========================================================================

    def prune(self) -> int:
        """
        Delete completed and failed jobs past their retention period.

        Returns:
            Number of jobs deleted
        """
        now = self.now()
        with self.db.connection() as conn:
            completed = conn.execute(
                "DELETE FROM jobs WHERE state = 'completed' AND finished_at < ?",
                (now - self.completed_retention,),
            ).rowcount
            failed = conn.execute(
                "DELETE FROM jobs WHERE state = 'failed' AND finished_at < ?",
                (now - self.failed_retention,),
            ).rowcount

        if completed or failed:
            logger.info(f"Pruned {completed} completed and {failed} failed job(s)")
        return completed + failed

    def requeue_stale(self, lease_seconds: int) -> int:
        """
        Return active jobs whose lease expired to the waiting state.

        A job stays active when its worker process died mid-run; its
        committed batches are kept and the next run re-reads from the start.

        Returns:
            Number of jobs requeued
        """
        now = self.now()
        with self.db.connection() as conn:
            count = conn.execute(
                """
                UPDATE jobs SET state = 'waiting', run_at = ?, progress = 0
                WHERE state = 'active' AND started_at < ?
                """,
                (now, now - timedelta(seconds=lease_seconds)),
            ).rowcount
        if count:
            logger.warning(f"Requeued {count} stale active job(s)")
        return count

    # =========================================================================
    # Query Operations
    # =========================================================================

    def get(self, job_id: str) -> Optional[Job]:
        with self.db.connection() as conn:
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
            return Job.from_row(row) if row else None

    def list_jobs(self, state: JobState | None = None, limit: int = 50) -> list[Job]:
        """List the most recent jobs, newest first."""
        query = "SELECT * FROM jobs"
        params: list[Any] = []
        if state is not None:
            query += " WHERE state = ?"
            params.append(state.value)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        with self.db.connection() as conn:
            return [Job.from_row(row) for row in conn.execute(query, params)]

    def counts(self) -> dict[str, int]:
        """Number of jobs per state."""
        result = {state.value: 0 for state in JobState}
        with self.db.connection() as conn:
            for row in conn.execute(
                "SELECT state, COUNT(*) AS n FROM jobs GROUP BY state"
            ):
                result[row["state"]] = row["n"]
        return result

