"""
listsync.auth - Provider credentials module

Google service-account credentials and cached Firebase Admin apps.
"""

from listsync.auth.service_account import (
    SHEETS_SCOPES,
    FirebaseAppCache,
    ServiceAccountError,
    firebase_app_name,
    get_google_credentials,
)

__all__ = [
    "SHEETS_SCOPES",
    "ServiceAccountError",
    "get_google_credentials",
    "firebase_app_name",
    "FirebaseAppCache",
]
