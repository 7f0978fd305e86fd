"""
Google Sheets connector (spreadsheet provider).

Reads one sheet (tab) of a spreadsheet with a single bulk range read.
The configured header row names the columns; every other row becomes a
record keyed by header name.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from listsync.auth.service_account import ServiceAccountError, get_google_credentials
from listsync.config.integration_config import (
    GoogleSheetsConfig,
    Integration,
    ProviderConfig,
    ProviderType,
    SheetsSource,
    SyncSource,
    TableSync,
)
from listsync.connectors.base import (
    Connector,
    Page,
    RawRecord,
    error_for_status,
    expect,
)
from listsync.sync.errors import ConfigurationError, TransientProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds


def quote_sheet_title(title: str) -> str:
    """Quote a sheet title for use as an A1 range."""
    return "'" + title.replace("'", "''") + "'"


def rows_to_records(
    rows: list[list[Any]], source: SheetsSource, email_column: str
) -> list[RawRecord]:
    """
    Turn raw sheet rows into records keyed by header name.

    Args:
        rows: Row values as returned by spreadsheets.values.get
        source: Sheet source (header row and skip-header option)
        email_column: Header the email field is mapped to

    Raises:
        ConfigurationError: If the sheet is empty, the header row does not
            exist, or the email column is not in the header
    """
    if not rows:
        raise ConfigurationError("Sheet is empty")

    header_index = source.header_row - 1
    if header_index >= len(rows):
        raise ConfigurationError(
            f"Header row {source.header_row} does not exist in the sheet"
        )

    headers = [str(cell).strip() for cell in rows[header_index]]
    if email_column not in headers:
        raise ConfigurationError(f"Email column '{email_column}' not found in the sheet")

    if source.skip_header:
        data_rows = rows[header_index + 1 :]
    else:
        data_rows = [row for index, row in enumerate(rows) if index != header_index]

    records: list[RawRecord] = []
    for row in data_rows:
        record: RawRecord = {}
        for column, header in enumerate(headers):
            # Duplicate headers resolve to their first column
            if not header or header in record:
                continue
            record[header] = row[column] if column < len(row) else ""
        records.append(record)
    return records


class GoogleSheetsConnector(Connector):
    """
    Connector for Google Sheets, authenticated with a service account.

    Usage:
        connector = GoogleSheetsConnector(timeout=30)
        for record in connector.fetch(integration, table_sync):
            ...
    """

    provider = ProviderType.GOOGLE_SHEETS
    fetch_complete_progress = 40

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        service_factory: Callable[[GoogleSheetsConfig], Any] | None = None,
    ):
        """
        Initialize the connector.

        Args:
            timeout: HTTP timeout in seconds
            service_factory: Builds the Sheets API service for a config
                (defaults to a googleapiclient service)
        """
        self.timeout = timeout
        self._service_factory = service_factory or self._build_service

    def _build_service(self, config: GoogleSheetsConfig) -> Any:
        try:
            creds = get_google_credentials(config.service_account)
        except ServiceAccountError as e:
            raise ConfigurationError(str(e)) from e
        http = AuthorizedHttp(creds, http=httplib2.Http(timeout=self.timeout))
        return build("sheets", "v4", http=http, cache_discovery=False)

    def _execute(self, request: Any, operation: str) -> Any:
        try:
            return request.execute()
        except HttpError as e:
            raise error_for_status(
                f"Google Sheets {operation}", e.resp.status, str(e.reason or "")
            ) from e
        except RefreshError as e:
            raise ConfigurationError(
                f"Google Sheets authentication failed: {e}"
            ) from e
        except (TransportError, httplib2.HttpLib2Error, OSError) as e:
            raise TransientProviderError(f"Google Sheets {operation} failed: {e}") from e

    def _resolve_sheet_title(self, service: Any, source: SheetsSource) -> str:
        spreadsheet = self._execute(
            service.spreadsheets().get(
                spreadsheetId=source.spreadsheet_id, fields="sheets.properties"
            ),
            "spreadsheets.get",
        )
        for sheet in spreadsheet.get("sheets", []):
            properties = sheet.get("properties", {})
            if str(properties.get("sheetId")) == source.sheet_id:
                return str(properties.get("title", ""))
        raise ConfigurationError(
            f"Sheet {source.sheet_id} not found in spreadsheet {source.spreadsheet_id}"
        )

    def iter_pages(
        self,
        integration: Integration,
        table_sync: TableSync,
        config: ProviderConfig,
        source: SyncSource,
    ) -> Iterator[Page]:
        config = expect(config, GoogleSheetsConfig, "config")
        source = expect(source, SheetsSource, "source")

        service = self._service_factory(config)
        title = self._resolve_sheet_title(service, source)

        response = self._execute(
            service.spreadsheets()
            .values()
            .get(spreadsheetId=source.spreadsheet_id, range=quote_sheet_title(title)),
            "values.get",
        )
        records = rows_to_records(
            response.get("values") or [], source, table_sync.mapping.email.strip()
        )
        logger.debug(
            f"Read {len(records)} row(s) from sheet '{title}' "
            f"of {source.spreadsheet_id}"
        )
        yield Page(records=records, total=len(records), final=True)
