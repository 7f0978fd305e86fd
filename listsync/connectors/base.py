"""
Connector base classes.

A connector reads raw records for one TableSync from its provider. Pages are
produced lazily by Connector.iter_pages() and flattened by RecordStream,
which also tracks the total record count (when the provider reports one)
and signals when the last page has been fetched.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, TypeVar

from listsync.config.integration_config import (
    Integration,
    ProviderConfig,
    ProviderType,
    SyncSource,
    TableSync,
    parse_provider_config,
    parse_source,
)
from listsync.sync.errors import ConfigurationError, SyncError, TransientProviderError

logger = logging.getLogger(__name__)

RawRecord = dict[str, Any]

T = TypeVar("T")

# HTTP statuses a retry cannot fix
CONFIGURATION_STATUSES = frozenset({400, 401, 403, 404, 422})


@dataclass
class Page:
    """
    One page of raw records.

    Attributes:
        records: Raw provider records in provider order
        total: Total number of records in the source, if the provider reports it
        final: True when no further page follows
    """

    records: list[RawRecord] = field(default_factory=list)
    total: int | None = None
    final: bool = False


class RecordStream:
    """
    Lazy, finite, single-pass iterator over raw records.

    Iterating a second time yields nothing; call Connector.fetch() again
    to re-read the provider.

    Attributes:
        total: Total record count when known, else None
        records_read: Records yielded so far
        fetch_complete: True once the final page has been fetched
    """

    def __init__(
        self,
        pages: Iterator[Page],
        on_fetch_complete: Callable[[RecordStream], None] | None = None,
    ):
        self._pages = pages
        self._records = self._iter_records()
        self.on_fetch_complete = on_fetch_complete
        self.total: int | None = None
        self.records_read = 0
        self.fetch_complete = False

    def _mark_fetch_complete(self) -> None:
        if self.fetch_complete:
            return
        self.fetch_complete = True
        if self.total is None:
            self.total = self.records_read
        if self.on_fetch_complete is not None:
            self.on_fetch_complete(self)

    def _iter_records(self) -> Iterator[RawRecord]:
        for page in self._pages:
            if page.total is not None:
                self.total = page.total
            if page.final:
                # Remaining records of this page are already in memory
                if self.total is None:
                    self.total = self.records_read + len(page.records)
                self._mark_fetch_complete()
            for record in page.records:
                self.records_read += 1
                yield record
        self._mark_fetch_complete()

    def __iter__(self) -> RecordStream:
        return self

    def __next__(self) -> RawRecord:
        return next(self._records)


def error_for_status(provider: str, status: int, detail: str = "") -> SyncError:
    """
    Translate a provider HTTP status into the sync error taxonomy.

    Authentication, permission, not-found and validation responses are
    ConfigurationErrors; everything else (rate limits, 5xx) is transient.
    """
    message = f"{provider} request failed with status {status}"
    if detail:
        message = f"{message}: {detail}"
    if status in CONFIGURATION_STATUSES:
        return ConfigurationError(message)
    return TransientProviderError(message, status_code=status)


def expect(value: Any, expected: type[T], what: str) -> T:
    """
    Return value if it is an instance of expected.

    Raises:
        ConfigurationError: If a connector is handed another provider's
            config or source.
    """
    if not isinstance(value, expected):
        raise ConfigurationError(
            f"Expected {expected.__name__} {what}, got {type(value).__name__}"
        )
    return value


class Connector(ABC):
    """
    Base class for provider connectors.

    Subclasses implement iter_pages(); fetch() parses the integration's
    typed config and source and wraps the pages in a RecordStream.

    Attributes:
        provider: Provider handled by this connector
        fetch_complete_progress: Job progress reported once the fetch is done
    """

    provider: ProviderType
    fetch_complete_progress: int = 30

    def fetch(
        self,
        integration: Integration,
        table_sync: TableSync,
        on_fetch_complete: Callable[[RecordStream], None] | None = None,
    ) -> RecordStream:
        """
        Start reading the records of one TableSync.

        Raises:
            ConfigurationError: If the integration config or source is invalid
        """
        config = parse_provider_config(integration.provider, integration.config)
        source = parse_source(integration.provider, table_sync.source)
        logger.debug(
            f"Fetching {self.provider.value} records for integration "
            f"{integration.id} sync {table_sync.id}"
        )
        pages = self.iter_pages(integration, table_sync, config, source)
        return RecordStream(pages, on_fetch_complete=on_fetch_complete)

    @abstractmethod
    def iter_pages(
        self,
        integration: Integration,
        table_sync: TableSync,
        config: ProviderConfig,
        source: SyncSource,
    ) -> Iterator[Page]:
        """Yield pages of raw records, lazily, in provider order."""


__all__ = [
    "RawRecord",
    "Page",
    "RecordStream",
    "Connector",
    "error_for_status",
    "CONFIGURATION_STATUSES",
]
