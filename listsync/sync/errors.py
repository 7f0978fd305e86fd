"""
Error taxonomy for sync jobs.

The job queue decides whether to retry a failed job from the class of the
exception raised by the handler:

- ConfigurationError: never retried; the job fails immediately.
- TransientProviderError: retried with exponential backoff.
- BatchWriteError: retried with exponential backoff.
"""


class SyncError(Exception):
    """Base exception for sync pipeline failures."""

    retryable = True


class ConfigurationError(SyncError):
    """
    Raised when a sync cannot run because of its configuration.

    Missing or invalid mapping, missing target list, missing credentials,
    autoSync disabled at execution time, unknown sheet or header row.
    """

    retryable = False


class TransientProviderError(SyncError):
    """Raised when a provider read fails in a way a later attempt may not."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class BatchWriteError(SyncError):
    """Raised when a bulk upsert against the contact store fails."""

    def __init__(self, message: str, batch_number: int, batch_size: int):
        super().__init__(message)
        self.batch_number = batch_number
        self.batch_size = batch_size


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether a job that raised error may be retried.

    Unknown exceptions are treated as transient.
    """
    if isinstance(error, SyncError):
        return error.retryable
    return True


__all__ = [
    "SyncError",
    "ConfigurationError",
    "TransientProviderError",
    "BatchWriteError",
    "is_retryable",
]
