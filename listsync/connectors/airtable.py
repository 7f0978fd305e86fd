"""
Airtable connector (tabular provider).

Reads a table through the Airtable REST API with offset-token pagination.
Records are requested with field ids as keys, so TableSync mappings refer
to Airtable field ids (``fldXXXX``).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import requests

from listsync.config.integration_config import (
    AirtableConfig,
    AirtableSource,
    Integration,
    ProviderConfig,
    ProviderType,
    SyncSource,
    TableSync,
)
from listsync.connectors.base import Connector, Page, error_for_status, expect
from listsync.sync.errors import TransientProviderError

logger = logging.getLogger(__name__)

AIRTABLE_API_URL = "https://api.airtable.com/v0"

# Airtable's maximum page size
PAGE_SIZE = 100

DEFAULT_TIMEOUT = 30.0  # seconds


class AirtableConnector(Connector):
    """
    Connector for Airtable bases.

    Usage:
        connector = AirtableConnector(timeout=30)
        for record in connector.fetch(integration, table_sync):
            ...
    """

    provider = ProviderType.AIRTABLE
    fetch_complete_progress = 30

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        api_url: str = AIRTABLE_API_URL,
    ):
        """
        Initialize the connector.

        Args:
            session: HTTP session to use (a new one is created if omitted)
            timeout: Request timeout in seconds
            api_url: Base URL of the Airtable API
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")

    def _get_page(
        self, config: AirtableConfig, source: AirtableSource, offset: str | None
    ) -> dict[str, Any]:
        url = f"{self.api_url}/{source.base_id}/{source.table_id}"
        params: dict[str, Any] = {
            "pageSize": PAGE_SIZE,
            "returnFieldsByFieldId": "true",
        }
        if offset:
            params["offset"] = offset

        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {config.api_key}"},
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientProviderError(f"Airtable request failed: {e}") from e

        if response.status_code >= 400:
            raise error_for_status("Airtable", response.status_code, response.text[:200])

        try:
            data = response.json()
        except ValueError as e:
            raise TransientProviderError(
                f"Airtable returned a malformed response: {e}"
            ) from e
        if not isinstance(data, dict):
            raise TransientProviderError("Airtable returned a malformed response")
        return data

    def iter_pages(
        self,
        integration: Integration,
        table_sync: TableSync,
        config: ProviderConfig,
        source: SyncSource,
    ) -> Iterator[Page]:
        config = expect(config, AirtableConfig, "config")
        source = expect(source, AirtableSource, "source")

        offset: str | None = None
        page_number = 0
        while True:
            data = self._get_page(config, source, offset)
            page_number += 1
            records = [
                record.get("fields") or {} for record in data.get("records") or []
            ]
            offset = data.get("offset")
            logger.debug(
                f"Airtable {source.base_id}/{source.table_id} page {page_number}: "
                f"{len(records)} record(s)"
            )
            yield Page(records=records, final=not offset)
            if not offset:
                break
