"""
listsync.jobs - Job queue module

Durable SQLite job queue with retry/backoff and retention, and the worker
pool that executes queued sync jobs.
"""

from listsync.jobs.queue import (
    Job,
    JobQueue,
    JobQueueError,
    JobState,
    retry_delay,
)
from listsync.jobs.worker import JobHandler, WorkerPool

__all__ = [
    "Job",
    "JobQueue",
    "JobQueueError",
    "JobState",
    "retry_delay",
    "JobHandler",
    "WorkerPool",
]
