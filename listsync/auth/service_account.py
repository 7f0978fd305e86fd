"""
Service-account credentials for provider connectors.

Provides:
- Google service-account credentials (read-only Sheets scope)
- Firebase Admin app handles, cached per brand and service account
"""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Any

import firebase_admin
from firebase_admin import credentials as firebase_credentials
from google.oauth2 import service_account

# Read-only access is all the spreadsheet connector needs
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

logger = logging.getLogger(__name__)


class ServiceAccountError(Exception):
    """Raised when service-account credentials cannot be loaded."""

    pass


def get_google_credentials(
    info: dict[str, Any], scopes: list[str] | None = None
) -> service_account.Credentials:
    """
    Build Google credentials from a service-account JSON document.

    Args:
        info: Parsed service-account JSON (client_email, private_key, ...)
        scopes: OAuth scopes (default: read-only spreadsheets)

    Raises:
        ServiceAccountError: If the document is not a usable service account
    """
    try:
        return service_account.Credentials.from_service_account_info(
            info, scopes=scopes or SHEETS_SCOPES
        )
    except (ValueError, KeyError) as e:
        raise ServiceAccountError(f"Invalid Google service account: {e}") from e


def firebase_app_name(brand_id: str, info: dict[str, Any]) -> str:
    """Firebase app name for one brand and service account."""
    digest = hashlib.sha256(
        "|".join(str(part) for part in service_account_fingerprint(info)).encode()
    ).hexdigest()[:12]
    return f"brand-{brand_id}-{digest}"


def service_account_fingerprint(info: dict[str, Any]) -> tuple[str, str, str]:
    return (
        str(info.get("project_id", "")),
        str(info.get("client_email", "")),
        str(info.get("private_key_id", "")),
    )


class FirebaseAppCache:
    """
    Firebase Admin app handles keyed by brand and service account.

    An app is initialized once per (brand, service account) pair and reused
    by later jobs. Integrations of one brand holding different service
    accounts get separate apps, so an app is never deleted while another
    job may still be using it. Apps are only released by clear().

    Usage:
        cache = FirebaseAppCache()
        app = cache.get_app("brand-1", service_account_info)
    """

    def __init__(self) -> None:
        self._apps: dict[str, firebase_admin.App] = {}
        self._lock = threading.Lock()

    def get_app(self, brand_id: str, info: dict[str, Any]) -> firebase_admin.App:
        """
        Get (or initialize) the Firebase app for a brand's service account.

        Raises:
            ServiceAccountError: If the service account cannot be loaded
        """
        name = firebase_app_name(brand_id, info)

        with self._lock:
            app = self._apps.get(name)
            if app is not None:
                return app

            try:
                cred = firebase_credentials.Certificate(info)
                app = firebase_admin.initialize_app(cred, name=name)
            except (ValueError, OSError) as e:
                raise ServiceAccountError(
                    f"Failed to initialize Firebase for brand {brand_id}: {e}"
                ) from e

            self._apps[name] = app
            logger.debug(f"Initialized Firebase app {name}")
            return app

    def clear(self) -> None:
        """Delete every cached app."""
        with self._lock:
            for app in self._apps.values():
                firebase_admin.delete_app(app)
            self._apps.clear()


__all__ = [
    "SHEETS_SCOPES",
    "ServiceAccountError",
    "get_google_credentials",
    "firebase_app_name",
    "service_account_fingerprint",
    "FirebaseAppCache",
]
