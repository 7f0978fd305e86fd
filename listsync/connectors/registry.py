"""
Connector registry keyed by provider type.

Connectors are created lazily on first use and reused afterwards; callers
and tests can register replacements with register().
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from listsync.config.integration_config import ProviderType
from listsync.connectors.base import Connector
from listsync.sync.errors import ConfigurationError

ConnectorFactory = Callable[[], Connector]


def default_factories(http_timeout: float = 30.0) -> dict[ProviderType, ConnectorFactory]:
    """Factories for the built-in connectors."""
    # Provider SDKs are imported on first use of their connector
    def airtable() -> Connector:
        from listsync.connectors.airtable import AirtableConnector

        return AirtableConnector(timeout=http_timeout)

    def google_sheets() -> Connector:
        from listsync.connectors.google_sheets import GoogleSheetsConnector

        return GoogleSheetsConnector(timeout=http_timeout)

    def supabase() -> Connector:
        from listsync.connectors.supabase import SupabaseConnector

        return SupabaseConnector()

    def firebase() -> Connector:
        from listsync.connectors.firebase import FirebaseConnector

        return FirebaseConnector()

    return {
        ProviderType.AIRTABLE: airtable,
        ProviderType.GOOGLE_SHEETS: google_sheets,
        ProviderType.SUPABASE: supabase,
        ProviderType.FIREBASE: firebase,
    }


class ConnectorRegistry:
    """
    Resolves the connector for a provider.

    Usage:
        registry = ConnectorRegistry(http_timeout=30)
        connector = registry.get(ProviderType.AIRTABLE)

        # Tests
        registry.register(ProviderType.AIRTABLE, fake_connector)
    """

    def __init__(
        self,
        http_timeout: float = 30.0,
        factories: dict[ProviderType, ConnectorFactory] | None = None,
    ):
        self._factories = (
            factories if factories is not None else default_factories(http_timeout)
        )
        self._connectors: dict[ProviderType, Connector] = {}
        self._lock = threading.Lock()

    def register(self, provider: ProviderType, connector: Connector) -> None:
        """Use connector for provider from now on."""
        with self._lock:
            self._connectors[provider] = connector

    def get(self, provider: ProviderType) -> Connector:
        """
        Get the connector for a provider.

        Raises:
            ConfigurationError: If no connector is available for the provider
        """
        with self._lock:
            connector = self._connectors.get(provider)
            if connector is None:
                factory = self._factories.get(provider)
                if factory is None:
                    raise ConfigurationError(
                        f"No connector registered for provider '{provider.value}'"
                    )
                connector = factory()
                self._connectors[provider] = connector
            return connector
