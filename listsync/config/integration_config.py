"""
Integration and TableSync configuration.

An Integration is a brand-scoped connection to one provider. Its credentials
are stored as an untyped document and parsed into one typed variant per
provider (a tagged union over ProviderType) when a job starts:

    AirtableConfig      -> tabular provider
    GoogleSheetsConfig  -> spreadsheet provider
    SupabaseConfig      -> relational provider
    FirebaseConfig      -> identity provider

Each TableSync maps one external table/sheet/base/query to one contact list.
Its provider-specific source identifiers are parsed the same way.

Document format (as accepted by Integration.from_dict):

    {
        "name": "Newsletter base",
        "provider": "airtable",
        "brandId": "brand-1",
        "userId": "user-1",
        "status": "active",
        "config": {"apiKey": "pat..."},
        "tableSyncs": [
            {
                "id": "tbl-sync-1",
                "name": "Subscribers",
                "source": {"baseId": "appXXX", "tableId": "tblYYY"},
                "mapping": {"email": "fldEmail", "firstName": "fldFirst"},
                "contactListId": "list-1",
                "autoSync": true
            }
        ]
    }

Notes:
    - Firebase integrations have exactly one implicit TableSync (id "default").
      When "tableSyncs" is omitted it is built from the legacy config keys
      autoSyncEnabled / autoSyncListId / createNewList / newListName.
    - mapping.email is mandatory for a sync to be enqueued or executed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from listsync.sync.errors import ConfigurationError
from listsync.utils.timeutil import parse_timestamp

# Id of the single TableSync carried by identity-provider integrations
IMPLICIT_SYNC_ID = "default"

# Fixed mapping used for identity-provider records
IDENTITY_MAPPING = {
    "email": "email",
    "firstName": "firstName",
    "lastName": "lastName",
    "phone": "phone",
}


class ProviderType(str, Enum):
    """Supported providers."""

    AIRTABLE = "airtable"
    GOOGLE_SHEETS = "google_sheets"
    SUPABASE = "supabase"
    FIREBASE = "firebase"

    @property
    def family(self) -> str:
        """Provider family name (tabular, spreadsheet, relational, identity)."""
        return _PROVIDER_FAMILIES[self]

    @property
    def has_implicit_sync(self) -> bool:
        """True when the integration carries exactly one implicit TableSync."""
        return self is ProviderType.FIREBASE


_PROVIDER_FAMILIES = {
    ProviderType.AIRTABLE: "tabular",
    ProviderType.GOOGLE_SHEETS: "spreadsheet",
    ProviderType.SUPABASE: "relational",
    ProviderType.FIREBASE: "identity",
}

VALID_PROVIDERS = {provider.value for provider in ProviderType}


class IntegrationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class IntegrationConfigError(ConfigurationError):
    """Raised when an integration or TableSync document is invalid."""

    pass


def parse_provider(value: str | ProviderType) -> ProviderType:
    """
    Parse a provider type value.

    Raises:
        IntegrationConfigError: If the value is not a known provider
    """
    if isinstance(value, ProviderType):
        return value
    try:
        return ProviderType(value)
    except ValueError as e:
        raise IntegrationConfigError(
            f"Unknown provider '{value}'. "
            f"Must be one of: {', '.join(sorted(VALID_PROVIDERS))}"
        ) from e


def _require_str(data: dict[str, Any], key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise IntegrationConfigError(f"{context}.{key} is required")
    return value.strip()


def _require_dict(data: dict[str, Any], key: str, context: str) -> dict[str, Any]:
    value = data.get(key)
    if not isinstance(value, dict) or not value:
        raise IntegrationConfigError(f"{context}.{key} is required")
    return value


# =============================================================================
# Field mapping and sync results
# =============================================================================


@dataclass
class FieldMapping:
    """
    Provider field names for each canonical contact field.

    Attributes:
        email: Provider field holding the email address (mandatory to sync)
        first_name: Provider field holding the first name
        last_name: Provider field holding the last name
        phone: Provider field holding the phone number
    """

    email: str = ""
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None

    def has_email(self) -> bool:
        """Check whether the mandatory email mapping is set."""
        return bool(self.email and self.email.strip())

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FieldMapping:
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise IntegrationConfigError(
                f"mapping must be a dictionary, got {type(data).__name__}"
            )
        return cls(
            email=data.get("email") or "",
            first_name=data.get("firstName") or None,
            last_name=data.get("lastName") or None,
            phone=data.get("phone") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"email": self.email}
        if self.first_name:
            result["firstName"] = self.first_name
        if self.last_name:
            result["lastName"] = self.last_name
        if self.phone:
            result["phone"] = self.phone
        return result


@dataclass
class SyncCounts:
    """
    Aggregated outcome of one sync run.

    imported + updated + skipped always equals total: every raw record read
    from the provider is accounted for exactly once.
    """

    imported_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    total_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SyncCounts | None:
        if not data:
            return None
        return cls(
            imported_count=int(data.get("importedCount", 0)),
            updated_count=int(data.get("updatedCount", 0)),
            skipped_count=int(data.get("skippedCount", 0)),
            total_count=int(data.get("totalCount", 0)),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "importedCount": self.imported_count,
            "updatedCount": self.updated_count,
            "skippedCount": self.skipped_count,
            "totalCount": self.total_count,
        }

    def summary(self) -> str:
        return (
            f"Imported: {self.imported_count}, Updated: {self.updated_count}, "
            f"Skipped: {self.skipped_count}, Total: {self.total_count}"
        )


# =============================================================================
# Provider credentials (tagged union)
# =============================================================================


@dataclass(frozen=True)
class AirtableConfig:
    api_key: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AirtableConfig:
        return cls(api_key=_require_str(data, "apiKey", "config"))


@dataclass(frozen=True)
class GoogleSheetsConfig:
    service_account: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GoogleSheetsConfig:
        service_account = _require_dict(data, "serviceAccount", "config")
        for key in ("client_email", "private_key"):
            _require_str(service_account, key, "config.serviceAccount")
        return cls(service_account=service_account)


@dataclass(frozen=True)
class SupabaseConfig:
    url: str
    api_key: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SupabaseConfig:
        return cls(
            url=_require_str(data, "url", "config"),
            api_key=_require_str(data, "apiKey", "config"),
        )


@dataclass(frozen=True)
class FirebaseConfig:
    """
    Firebase Auth credentials.

    Attributes:
        service_account: Service account JSON (project_id required)
        incremental_skip: Skip users not refreshed since the last sync
    """

    service_account: dict[str, Any]
    incremental_skip: bool = False

    @property
    def project_id(self) -> str:
        return str(self.service_account["project_id"])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FirebaseConfig:
        service_account = _require_dict(data, "serviceAccount", "config")
        _require_str(service_account, "project_id", "config.serviceAccount")
        incremental_skip = data.get("incrementalSkip", False)
        if not isinstance(incremental_skip, bool):
            raise IntegrationConfigError(
                f"config.incrementalSkip must be a boolean, "
                f"got {type(incremental_skip).__name__}"
            )
        return cls(service_account=service_account, incremental_skip=incremental_skip)


ProviderConfig = Union[AirtableConfig, GoogleSheetsConfig, SupabaseConfig, FirebaseConfig]

_CONFIG_TYPES: dict[ProviderType, Any] = {
    ProviderType.AIRTABLE: AirtableConfig,
    ProviderType.GOOGLE_SHEETS: GoogleSheetsConfig,
    ProviderType.SUPABASE: SupabaseConfig,
    ProviderType.FIREBASE: FirebaseConfig,
}


def parse_provider_config(
    provider: ProviderType, data: dict[str, Any] | None
) -> ProviderConfig:
    """
    Parse an integration's credential document into its typed variant.

    Raises:
        IntegrationConfigError: If required credentials are missing
    """
    if not isinstance(data, dict):
        raise IntegrationConfigError(f"{provider.value} integration has no config")
    config: ProviderConfig = _CONFIG_TYPES[provider].from_dict(data)
    return config


# =============================================================================
# TableSync source identifiers (tagged union)
# =============================================================================


@dataclass(frozen=True)
class AirtableSource:
    base_id: str
    table_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AirtableSource:
        return cls(
            base_id=_require_str(data, "baseId", "source"),
            table_id=_require_str(data, "tableId", "source"),
        )


@dataclass(frozen=True)
class SheetsSource:
    """
    Google Sheets source.

    Attributes:
        spreadsheet_id: Spreadsheet id
        sheet_id: Numeric sheet (tab) id, as a string
        header_row: 1-based index of the row holding column names
        skip_header: Exclude every row up to and including the header row
    """

    spreadsheet_id: str
    sheet_id: str
    header_row: int = 1
    skip_header: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SheetsSource:
        sheet_id = data.get("sheetId")
        if sheet_id is None or str(sheet_id).strip() == "":
            raise IntegrationConfigError("source.sheetId is required")
        header_row = data.get("headerRow", 1)
        if isinstance(header_row, bool) or not isinstance(header_row, int):
            raise IntegrationConfigError(
                f"source.headerRow must be an integer, got {type(header_row).__name__}"
            )
        if header_row < 1:
            raise IntegrationConfigError(
                f"source.headerRow must be >= 1, got {header_row}"
            )
        return cls(
            spreadsheet_id=_require_str(data, "spreadsheetId", "source"),
            sheet_id=str(sheet_id),
            header_row=header_row,
            skip_header=bool(data.get("skipHeader", True)),
        )


@dataclass(frozen=True)
class SupabaseSource:
    table_name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SupabaseSource:
        return cls(table_name=_require_str(data, "tableName", "source"))


@dataclass(frozen=True)
class FirebaseSource:
    """Firebase Auth has a single user directory; no identifiers needed."""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FirebaseSource:
        return cls()


SyncSource = Union[AirtableSource, SheetsSource, SupabaseSource, FirebaseSource]

_SOURCE_TYPES: dict[ProviderType, Any] = {
    ProviderType.AIRTABLE: AirtableSource,
    ProviderType.GOOGLE_SHEETS: SheetsSource,
    ProviderType.SUPABASE: SupabaseSource,
    ProviderType.FIREBASE: FirebaseSource,
}


def parse_source(provider: ProviderType, data: dict[str, Any] | None) -> SyncSource:
    """
    Parse a TableSync's source identifiers into the provider's variant.

    Raises:
        IntegrationConfigError: If required identifiers are missing
    """
    source: SyncSource = _SOURCE_TYPES[provider].from_dict(data or {})
    return source


# =============================================================================
# TableSync and Integration records
# =============================================================================


@dataclass
class TableSync:
    """
    One configured mapping from an external table to one contact list.

    Attributes:
        id: Sync identifier, unique within its integration
        name: Display name
        source: Raw provider-specific source identifiers
        mapping: Field mapping onto the canonical contact schema
        contact_list_id: Target contact list
        auto_sync: Include in the hourly scheduler tick
        create_new_list: Create the target list on the next run
        new_list_name: Name for the list created by create_new_list
        last_synced_at: Time of the last successful run
        last_sync_result: Counts of the last successful run
        status: pending, success or error
        last_error: Message of the last terminal failure
    """

    id: str
    name: str = ""
    source: dict[str, Any] = field(default_factory=dict)
    mapping: FieldMapping = field(default_factory=FieldMapping)
    contact_list_id: str | None = None
    auto_sync: bool = False
    create_new_list: bool = False
    new_list_name: str = ""
    last_synced_at: datetime | None = None
    last_sync_result: SyncCounts | None = None
    status: str = "pending"
    last_error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableSync:
        """
        Create a TableSync from a camelCase document.

        Raises:
            IntegrationConfigError: If the document structure is invalid
        """
        if not isinstance(data, dict):
            raise IntegrationConfigError(
                f"tableSync must be a dictionary, got {type(data).__name__}"
            )
        auto_sync = data.get("autoSync", False)
        if not isinstance(auto_sync, bool):
            raise IntegrationConfigError(
                f"tableSync.autoSync must be a boolean, got {type(auto_sync).__name__}"
            )
        source = data.get("source") or {}
        if not isinstance(source, dict):
            raise IntegrationConfigError("tableSync.source must be a dictionary")
        try:
            last_synced_at = parse_timestamp(data.get("lastSyncedAt"))
        except ValueError as e:
            raise IntegrationConfigError(f"Invalid lastSyncedAt: {e}") from e
        contact_list_id = data.get("contactListId")
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            name=data.get("name") or "",
            source=source,
            mapping=FieldMapping.from_dict(data.get("mapping")),
            contact_list_id=str(contact_list_id) if contact_list_id else None,
            auto_sync=auto_sync,
            create_new_list=bool(data.get("createNewList", False)),
            new_list_name=data.get("newListName") or "",
            last_synced_at=last_synced_at,
            last_sync_result=SyncCounts.from_dict(data.get("lastSyncResult")),
            status=data.get("status") or "pending",
            last_error=data.get("lastError"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "autoSync": self.auto_sync,
            "mapping": self.mapping.to_dict(),
            "source": dict(self.source),
            "contactListId": self.contact_list_id,
            "createNewList": self.create_new_list,
            "newListName": self.new_list_name,
            "lastSyncedAt": (
                self.last_synced_at.isoformat() if self.last_synced_at else None
            ),
            "lastSyncResult": (
                self.last_sync_result.to_dict() if self.last_sync_result else None
            ),
            "status": self.status,
            "lastError": self.last_error,
        }


@dataclass
class Integration:
    """
    Brand-scoped connection to one provider.

    The config document is opaque here; parse it with
    parse_provider_config(integration.provider, integration.config).
    """

    id: str
    brand_id: str
    user_id: str
    provider: ProviderType
    name: str = ""
    status: str = IntegrationStatus.ACTIVE.value
    config: dict[str, Any] = field(default_factory=dict)
    table_syncs: list[TableSync] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == IntegrationStatus.ACTIVE.value

    def find_sync(self, sync_id: str | None) -> TableSync | None:
        """
        Find a TableSync by id.

        A sync_id of None resolves to the implicit sync of identity
        integrations.
        """
        if sync_id is None:
            if not self.provider.has_implicit_sync:
                return None
            sync_id = IMPLICIT_SYNC_ID
        for table_sync in self.table_syncs:
            if table_sync.id == sync_id:
                return table_sync
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Integration:
        """
        Create an Integration from a camelCase document.

        Raises:
            IntegrationConfigError: If the document structure is invalid
        """
        if not isinstance(data, dict):
            raise IntegrationConfigError(
                f"Integration must be a dictionary, got {type(data).__name__}"
            )

        provider = parse_provider(data.get("provider") or data.get("type") or "")
        status = data.get("status", IntegrationStatus.ACTIVE.value)
        if status not in {s.value for s in IntegrationStatus}:
            raise IntegrationConfigError(
                f"Invalid status '{status}'. Must be 'active' or 'inactive'"
            )

        config = data.get("config") or {}
        if not isinstance(config, dict):
            raise IntegrationConfigError("config must be a dictionary")

        raw_syncs = data.get("tableSyncs")
        if raw_syncs is None and provider.has_implicit_sync:
            raw_syncs = [_implicit_sync_document(config)]
        if raw_syncs is None:
            raw_syncs = []
        if not isinstance(raw_syncs, list):
            raise IntegrationConfigError("tableSyncs must be a list")

        table_syncs = [TableSync.from_dict(item) for item in raw_syncs]
        if provider.has_implicit_sync:
            if len(table_syncs) != 1:
                raise IntegrationConfigError(
                    f"{provider.value} integrations have exactly one sync, "
                    f"got {len(table_syncs)}"
                )
            table_syncs[0].id = IMPLICIT_SYNC_ID
            table_syncs[0].mapping = FieldMapping.from_dict(IDENTITY_MAPPING)

        seen: set[str] = set()
        for table_sync in table_syncs:
            if table_sync.id in seen:
                raise IntegrationConfigError(f"Duplicate tableSync id '{table_sync.id}'")
            seen.add(table_sync.id)

        return cls(
            id=str(data.get("id") or uuid.uuid4().hex),
            brand_id=_require_str(data, "brandId", "integration"),
            user_id=_require_str(data, "userId", "integration"),
            provider=provider,
            name=data.get("name") or "",
            status=status,
            config=config,
            table_syncs=table_syncs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider.value,
            "brandId": self.brand_id,
            "userId": self.user_id,
            "status": self.status,
            "config": dict(self.config),
            "tableSyncs": [table_sync.to_dict() for table_sync in self.table_syncs],
        }


def _implicit_sync_document(config: dict[str, Any]) -> dict[str, Any]:
    """Build the implicit identity sync from legacy Firebase config keys."""
    return {
        "id": IMPLICIT_SYNC_ID,
        "name": "Firebase Auth users",
        "autoSync": bool(config.get("autoSyncEnabled", False)),
        "contactListId": config.get("autoSyncListId"),
        "createNewList": bool(config.get("createNewList", False)),
        "newListName": config.get("newListName") or "",
        "lastSyncedAt": config.get("lastSyncedAt"),
        "mapping": IDENTITY_MAPPING,
    }


__all__ = [
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
