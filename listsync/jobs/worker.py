"""
Worker pool executing queued sync jobs.

Each worker thread repeatedly claims the oldest due job, runs it through a
JobHandler and records the outcome on the queue. Retry decisions are made
from the class of the raised exception (see listsync.sync.errors).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Protocol

from listsync.jobs.queue import Job, JobQueue
from listsync.sync.errors import is_retryable

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4
DEFAULT_POLL_INTERVAL = 1.0  # seconds

ProgressCallback = Callable[[int], int]


class JobHandler(Protocol):
    def handle(self, job: Job, report_progress: ProgressCallback) -> dict[str, Any]:
        """Run the job and return its result document."""
        ...

    def on_failed(self, job: Job, error: BaseException) -> None:
        """Called once when a job fails for good."""
        ...


class WorkerPool:
    """
    Fixed-size pool of worker threads draining a JobQueue.

    Usage:
        pool = WorkerPool(queue, handler, concurrency=4)

        # Drain everything currently due, then return
        processed = pool.run_once()

        # Or poll until stop() is called from another thread
        pool.run_forever()

    Attributes:
        queue: Job queue to consume
        handler: Executes one job
        concurrency: Number of worker threads
        poll_interval: Seconds an idle worker waits before polling again
    """

    def __init__(
        self,
        queue: JobQueue,
        handler: JobHandler,
        concurrency: int = DEFAULT_CONCURRENCY,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.queue = queue
        self.handler = handler
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.processed_count = 0
        self.failed_count = 0

    def process_job(self, job: Job) -> bool:
        """
        Run one claimed job and record its outcome.

        Returns:
            True if the job completed, False if the attempt failed
        """

        def report_progress(progress: int) -> int:
            return self.queue.update_progress(job.id, progress)

        try:
            result = self.handler.handle(job, report_progress)
        except Exception as e:
            logger.debug(f"Job {job.job_key} raised {type(e).__name__}", exc_info=True)
            will_retry = self.queue.fail(job, str(e), retryable=is_retryable(e))
            if not will_retry:
                self.handler.on_failed(job, e)
                with self._lock:
                    self.failed_count += 1
            return False

        self.queue.complete(job.id, result)
        with self._lock:
            self.processed_count += 1
        return True

    def _drain(self) -> int:
        processed = 0
        while not self._stop_event.is_set():
            job = self.queue.claim_next()
            if job is None:
                break
            self.process_job(job)
            processed += 1
        return processed

    def run_once(self) -> int:
        """
        Run jobs until none is due, using all worker threads.

        Retries scheduled in the future are left for a later run.

        Returns:
            Number of job attempts executed
        """
        total = 0
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            futures = [executor.submit(self._drain) for _ in range(self.concurrency)]
            for future in as_completed(futures):
                total += future.result()
        return total

    def _worker_loop(self, worker_number: int) -> None:
        logger.debug(f"Worker {worker_number} started")
        while not self._stop_event.is_set():
            try:
                job = self.queue.claim_next()
            except Exception as e:
                logger.error(f"Worker {worker_number} could not claim a job: {e}")
                self._stop_event.wait(self.poll_interval)
                continue

            if job is None:
                self._stop_event.wait(self.poll_interval)
                continue

            try:
                self.process_job(job)
            except Exception as e:
                # Failure while recording the outcome; the job stays active
                # until stale recovery returns it to the queue
                logger.error(f"Worker {worker_number} lost job {job.job_key}: {e}")
        logger.debug(f"Worker {worker_number} stopped")

    def run_forever(self) -> None:
        """Poll the queue with all worker threads until stop() is called."""
        self._stop_event.clear()
        logger.info(f"Worker pool started ({self.concurrency} worker(s))")
        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="listsync-worker"
        ) as executor:
            futures = [
                executor.submit(self._worker_loop, number)
                for number in range(1, self.concurrency + 1)
            ]
            for future in as_completed(futures):
                future.result()
        logger.info("Worker pool stopped")

    def start_background(self) -> threading.Thread:
        """Run run_forever() in a daemon thread and return the thread."""
        thread = threading.Thread(
            target=self.run_forever, name="listsync-worker-pool", daemon=True
        )
        thread.start()
        return thread

    def stop(self) -> None:
        """Ask all workers to finish their current job and exit."""
        self._stop_event.set()
