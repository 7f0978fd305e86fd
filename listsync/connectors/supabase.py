"""
Supabase connector (relational provider).

Reads a table through the supabase client in ranged selects. The exact row
count PostgREST reports on each select is the stream total, and reading
continues until that many rows have arrived: PostgREST caps a single
response at its max-rows setting.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from listsync.config.integration_config import (
    Integration,
    ProviderConfig,
    ProviderType,
    SupabaseConfig,
    SupabaseSource,
    SyncSource,
    TableSync,
)
from listsync.connectors.base import Connector, Page, expect
from listsync.sync.errors import ConfigurationError, TransientProviderError

logger = logging.getLogger(__name__)

# Rows per ranged select (PostgREST's default max-rows)
PAGE_SIZE = 1000

# PostgREST / Postgres error codes a retry cannot fix
CONFIGURATION_ERROR_CODES = frozenset(
    {
        "42P01",  # undefined table
        "42501",  # insufficient privilege
        "PGRST106",  # schema not exposed
        "PGRST205",  # table not found in schema cache
        "PGRST301",  # invalid JWT
        "PGRST302",  # anonymous access disabled
    }
)


class SupabaseConnector(Connector):
    """
    Connector for Supabase tables.

    Usage:
        connector = SupabaseConnector()
        for record in connector.fetch(integration, table_sync):
            ...
    """

    provider = ProviderType.SUPABASE
    fetch_complete_progress = 30

    def __init__(
        self,
        client_factory: Callable[[SupabaseConfig], Client] | None = None,
        page_size: int = PAGE_SIZE,
    ):
        """
        Initialize the connector.

        Args:
            client_factory: Builds a supabase Client for a config
                (defaults to supabase.create_client)
            page_size: Rows requested per ranged select
        """
        self._client_factory = client_factory or self._create_client
        self.page_size = page_size

    @staticmethod
    def _create_client(config: SupabaseConfig) -> Client:
        try:
            return create_client(config.url, config.api_key)
        except Exception as e:
            # create_client validates the URL and key format
            raise ConfigurationError(f"Invalid Supabase credentials: {e}") from e

    def _select_range(
        self, client: Client, table_name: str, start: int, end: int
    ) -> Any:
        try:
            return (
                client.table(table_name)
                .select("*", count="exact")
                .range(start, end)
                .execute()
            )
        except APIError as e:
            message = f"Supabase select on '{table_name}' failed: {e.message}"
            if e.code in CONFIGURATION_ERROR_CODES:
                raise ConfigurationError(message) from e
            raise TransientProviderError(message) from e
        except httpx.HTTPError as e:
            raise TransientProviderError(f"Supabase request failed: {e}") from e

    def iter_pages(
        self,
        integration: Integration,
        table_sync: TableSync,
        config: ProviderConfig,
        source: SyncSource,
    ) -> Iterator[Page]:
        config = expect(config, SupabaseConfig, "config")
        source = expect(source, SupabaseSource, "source")

        client = self._client_factory(config)
        total: int | None = None
        start = 0
        while True:
            response = self._select_range(
                client, source.table_name, start, start + self.page_size - 1
            )
            rows: list[dict[str, Any]] = list(response.data or [])
            if total is None:
                total = response.count

            if not rows and total is not None and start < total:
                raise TransientProviderError(
                    f"Supabase table {source.table_name} returned {start} of "
                    f"{total} row(s)"
                )

            start += len(rows)
            final = not rows if total is None else start >= total
            logger.debug(
                f"Read {start} row(s) from Supabase table {source.table_name} "
                f"(count: {total})"
            )
            yield Page(records=rows, total=total, final=final)
            if final:
                return
