"""
listsync.connectors - Provider connector module

One connector per provider family produces a lazy RecordStream of raw
records for a TableSync:

    airtable       -> AirtableConnector       (tabular)
    google_sheets  -> GoogleSheetsConnector   (spreadsheet)
    supabase       -> SupabaseConnector       (relational)
    firebase       -> FirebaseConnector       (identity)

Provider modules import their SDKs, so import them directly or resolve
connectors through ConnectorRegistry.
"""

from listsync.connectors.base import (
    Connector,
    Page,
    RawRecord,
    RecordStream,
    error_for_status,
)
from listsync.connectors.registry import ConnectorRegistry, default_factories

__all__ = [
    "Connector",
    "Page",
    "RawRecord",
    "RecordStream",
    "error_for_status",
    "ConnectorRegistry",
    "default_factories",
]
