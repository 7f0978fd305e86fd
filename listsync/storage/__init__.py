"""
listsync.storage - Persistence module

SQLite-backed sync configuration store, contact store and job tables.
"""

from listsync.storage.db import (
    SCHEMA,
    BulkWriteResult,
    ContactList,
    SyncDatabase,
    UpsertOperation,
)

__all__ = [
    "SCHEMA",
    "SyncDatabase",
    "ContactList",
    "UpsertOperation",
    "BulkWriteResult",
]
