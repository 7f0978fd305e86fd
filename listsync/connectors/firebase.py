"""
Firebase Auth connector (identity provider).

Lists the users of a Firebase project with page-token pagination and turns
each user into a record using the fixed identity field names
(email, firstName, lastName, phone).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from listsync.auth.service_account import FirebaseAppCache, ServiceAccountError
from listsync.config.integration_config import (
    FirebaseConfig,
    Integration,
    ProviderConfig,
    ProviderType,
    SyncSource,
    TableSync,
)
from listsync.connectors.base import Connector, Page, RawRecord, expect
from listsync.sync.errors import ConfigurationError, TransientProviderError
from listsync.utils.normalization import split_display_name
from listsync.utils.timeutil import from_epoch_millis

logger = logging.getLogger(__name__)

# Maximum page size accepted by list_users
PAGE_SIZE = 1000

_CONFIGURATION_ERRORS = (
    firebase_exceptions.UnauthenticatedError,
    firebase_exceptions.PermissionDeniedError,
    firebase_exceptions.NotFoundError,
    firebase_exceptions.InvalidArgumentError,
)


def user_to_record(user: Any) -> RawRecord:
    """
    Convert a Firebase ExportedUserRecord into a raw identity record.

    The display name is split on its first space into first and last name.
    lastModified is the user's last refresh time (naive UTC) or None.
    """
    first_name, last_name = split_display_name(user.display_name)
    metadata = getattr(user, "user_metadata", None)
    last_refresh = getattr(metadata, "last_refresh_timestamp", None)
    return {
        "uid": user.uid,
        "email": user.email or "",
        "firstName": first_name,
        "lastName": last_name,
        "phone": user.phone_number or "",
        "disabled": bool(user.disabled),
        "emailVerified": bool(user.email_verified),
        "lastModified": from_epoch_millis(last_refresh),
    }


class FirebaseConnector(Connector):
    """
    Connector for Firebase Auth user directories.

    Firebase apps are initialized once per brand and service account and
    cached for the lifetime of the connector (see FirebaseAppCache).
    """

    provider = ProviderType.FIREBASE
    fetch_complete_progress = 50

    def __init__(
        self,
        app_cache: FirebaseAppCache | None = None,
        list_users: Callable[..., Any] | None = None,
    ):
        """
        Initialize the connector.

        Args:
            app_cache: Firebase app cache (a new one if omitted)
            list_users: Replacement for firebase_admin.auth.list_users
        """
        self.app_cache = app_cache or FirebaseAppCache()
        self._list_users = list_users or firebase_auth.list_users

    def _get_app(self, integration: Integration, config: FirebaseConfig) -> Any:
        try:
            return self.app_cache.get_app(integration.brand_id, config.service_account)
        except ServiceAccountError as e:
            raise ConfigurationError(str(e)) from e

    def _list_page(self, app: firebase_admin.App, page_token: str | None) -> Any:
        try:
            return self._list_users(
                page_token=page_token, max_results=PAGE_SIZE, app=app
            )
        except _CONFIGURATION_ERRORS as e:
            raise ConfigurationError(f"Firebase list_users failed: {e}") from e
        except firebase_exceptions.FirebaseError as e:
            raise TransientProviderError(f"Firebase list_users failed: {e}") from e

    def iter_pages(
        self,
        integration: Integration,
        table_sync: TableSync,
        config: ProviderConfig,
        source: SyncSource,
    ) -> Iterator[Page]:
        config = expect(config, FirebaseConfig, "config")

        app = self._get_app(integration, config)
        page_token: str | None = None
        page_number = 0
        while True:
            page = self._list_page(app, page_token)
            page_number += 1
            records = [user_to_record(user) for user in page.users]
            page_token = page.next_page_token or None
            logger.debug(
                f"Firebase project {config.project_id} page {page_number}: "
                f"{len(records)} user(s)"
            )
            yield Page(records=records, final=page_token is None)
            if page_token is None:
                break
