"""
listsync.config - Configuration management module

Contains the YAML application config loader, typed settings, and the
integration/TableSync configuration model.
"""

from listsync.config.generator import generate_default_config, save_config_file
from listsync.config.integration_config import (
    IDENTITY_MAPPING,
    IMPLICIT_SYNC_ID,
    AirtableConfig,
    AirtableSource,
    FieldMapping,
    FirebaseConfig,
    FirebaseSource,
    GoogleSheetsConfig,
    Integration,
    IntegrationConfigError,
    IntegrationStatus,
    ProviderConfig,
    ProviderType,
    SheetsSource,
    SupabaseConfig,
    SupabaseSource,
    SyncCounts,
    SyncSource,
    TableSync,
    parse_provider,
    parse_provider_config,
    parse_source,
)
from listsync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from listsync.config.settings import Settings

__all__ = [
    "ConfigLoader",
    "ConfigError",
    "DEFAULT_CONFIG_FILE",
    "Settings",
    "generate_default_config",
    "save_config_file",
    "IMPLICIT_SYNC_ID",
    "IDENTITY_MAPPING",
    "ProviderType",
    "IntegrationStatus",
    "IntegrationConfigError",
    "parse_provider",
    "FieldMapping",
    "SyncCounts",
    "AirtableConfig",
    "GoogleSheetsConfig",
    "SupabaseConfig",
    "FirebaseConfig",
    "ProviderConfig",
    "parse_provider_config",
    "AirtableSource",
    "SheetsSource",
    "SupabaseSource",
    "FirebaseSource",
    "SyncSource",
    "parse_source",
    "TableSync",
    "Integration",
]
