"""
SQLite database module for integrations, contact lists and contacts.

Provides persistent storage for:
- Integrations and their TableSync definitions (the sync configuration store)
- Contact lists and contacts (the contact store, one row per (email, list))
- The job queue and per-sync in-flight markers (see listsync.jobs.queue)
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from listsync.config.integration_config import (
    FieldMapping,
    Integration,
    ProviderType,
    SyncCounts,
    TableSync,
)
from listsync.utils.timeutil import utcnow

# SQL Schema for the configuration store, contact store and job queue
SCHEMA = """
CREATE TABLE IF NOT EXISTS integrations (
    id TEXT PRIMARY KEY,
    brand_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'active',
    config TEXT NOT NULL DEFAULT '{}',
    created_at TIMESTAMP,
    updated_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_integrations_provider ON integrations(provider, status);

CREATE TABLE IF NOT EXISTS table_syncs (
    integration_id TEXT NOT NULL,
    id TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    name TEXT NOT NULL DEFAULT '',
    source TEXT NOT NULL DEFAULT '{}',
    mapping TEXT NOT NULL DEFAULT '{}',
    contact_list_id TEXT,
    auto_sync BOOLEAN NOT NULL DEFAULT 0,
    create_new_list BOOLEAN NOT NULL DEFAULT 0,
    new_list_name TEXT NOT NULL DEFAULT '',
    last_synced_at TIMESTAMP,
    last_sync_result TEXT,
    status TEXT NOT NULL DEFAULT 'pending',
    last_error TEXT,
    PRIMARY KEY (integration_id, id)
);

CREATE TABLE IF NOT EXISTS contact_lists (
    id TEXT PRIMARY KEY,
    brand_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    contact_count INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_contact_lists_brand ON contact_lists(brand_id);

CREATE TABLE IF NOT EXISTS contacts (
    id INTEGER PRIMARY KEY,
    email TEXT NOT NULL,
    list_id TEXT NOT NULL,
    brand_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    first_name TEXT NOT NULL DEFAULT '',
    last_name TEXT NOT NULL DEFAULT '',
    phone TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'active',
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    UNIQUE(email, list_id)
);

CREATE INDEX IF NOT EXISTS idx_contacts_list ON contacts(list_id);

CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    job_key TEXT NOT NULL,
    payload TEXT NOT NULL,
    state TEXT NOT NULL DEFAULT 'waiting',
    attempts INTEGER NOT NULL DEFAULT 0,
    max_attempts INTEGER NOT NULL DEFAULT 3,
    backoff_delay REAL NOT NULL DEFAULT 5.0,
    progress INTEGER NOT NULL DEFAULT 0,
    run_at TIMESTAMP NOT NULL,
    last_error TEXT,
    result TEXT,
    created_at TIMESTAMP NOT NULL,
    started_at TIMESTAMP,
    finished_at TIMESTAMP,
    UNIQUE(job_key)
);

CREATE INDEX IF NOT EXISTS idx_jobs_due ON jobs(state, run_at);

CREATE TABLE IF NOT EXISTS sync_locks (
    integration_id TEXT NOT NULL,
    sync_id TEXT NOT NULL,
    job_id TEXT NOT NULL,
    expires_at TIMESTAMP NOT NULL,
    PRIMARY KEY (integration_id, sync_id)
);
"""

# Contact columns an UpsertOperation may set
CONTACT_FIELDS = (
    "brand_id",
    "user_id",
    "first_name",
    "last_name",
    "phone",
    "status",
)

# Lock key used for implicit (identity provider) syncs
LOCK_IMPLICIT_SYNC = "-"


@dataclass
class ContactList:
    """A brand-scoped contact list."""

    id: str
    brand_id: str
    user_id: str
    name: str
    description: str = ""
    contact_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class UpsertOperation:
    """
    One contact upsert keyed by (email, list_id).

    Attributes:
        email: Normalized email
        list_id: Target contact list
        set_fields: Columns written on insert and on update
        on_insert: Columns written only when the contact is created
        updated_at: Timestamp written when the row changes
    """

    email: str
    list_id: str
    set_fields: dict[str, Any] = field(default_factory=dict)
    on_insert: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class BulkWriteResult:
    """
    Outcome of one bulk upsert.

    matched counts every operation that found an existing contact,
    modified the subset of those whose fields changed, upserted the
    operations that inserted a new contact.
    """

    matched: int = 0
    modified: int = 0
    upserted: int = 0

    @property
    def unchanged(self) -> int:
        return self.matched - self.modified


def _to_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


def _from_json(value: str | None) -> Any:
    if value is None:
        return None
    return json.loads(value)


class SyncDatabase:
    """
    SQLite database manager for integrations, contact lists and contacts.

    Provides methods for:
    - Storing integrations and their TableSync definitions
    - Writing sync results back onto a TableSync
    - Creating contact lists and recounting their size
    - Bulk upserting contacts keyed by (email, list)
    - Acquiring and releasing per-sync in-flight markers

    Usage:
        db = SyncDatabase('/path/to/listsync.db')
        db.initialize()

        # Or use in-memory for testing:
        db = SyncDatabase(':memory:')
        db.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None
        self._shared_lock = threading.RLock()

    @property
    def is_memory(self) -> bool:
        return self.db_path == ":memory:"

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        schema persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.is_memory:
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(
                    ":memory:",
                    detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                    check_same_thread=False,
                )
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(
            self.db_path,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            timeout=30.0,
        )
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Everything executed inside one ``with`` block is one transaction:
        committed on normal exit, rolled back if the block raises.

        Usage:
            with db.connection() as conn:
                conn.execute("SELECT * FROM contacts")
        """
        if self.is_memory:
            # One shared connection; worker threads take turns
            with self._shared_lock:
                conn = self._get_connection()
                try:
                    yield conn
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
            return

        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create all tables if they don't exist."""
        with self.connection() as conn:
            if not self.is_memory:
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)

    def close(self) -> None:
        """Close the shared in-memory connection, if any."""
        with self._shared_lock:
            if self._shared_connection is not None:
                self._shared_connection.close()
                self._shared_connection = None

    # =========================================================================
    # Integration Operations
    # =========================================================================

    def save_integration(self, integration: Integration) -> None:
        """
        Insert or replace an integration together with its TableSyncs.

        TableSyncs no longer present on the integration are deleted.
        """
        now = utcnow()
        created_at = integration.created_at or now
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO integrations (
                    id, brand_id, user_id, provider, name, status, config,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    brand_id = excluded.brand_id,
                    user_id = excluded.user_id,
                    provider = excluded.provider,
                    name = excluded.name,
                    status = excluded.status,
                    config = excluded.config,
                    updated_at = excluded.updated_at
                """,
                (
                    integration.id,
                    integration.brand_id,
                    integration.user_id,
                    integration.provider.value,
                    integration.name,
                    integration.status,
                    _to_json(integration.config),
                    created_at,
                    now,
                ),
            )

            sync_ids = [table_sync.id for table_sync in integration.table_syncs]
            placeholders = ", ".join("?" for _ in sync_ids)
            if sync_ids:
                conn.execute(
                    "DELETE FROM table_syncs WHERE integration_id = ? "  # nosec B608
                    f"AND id NOT IN ({placeholders})",
                    [integration.id, *sync_ids],
                )
            else:
                conn.execute(
                    "DELETE FROM table_syncs WHERE integration_id = ?",
                    (integration.id,),
                )

            for position, table_sync in enumerate(integration.table_syncs):
                self._write_table_sync(conn, integration.id, position, table_sync)

        integration.created_at = created_at
        integration.updated_at = now

    def _write_table_sync(
        self,
        conn: sqlite3.Connection,
        integration_id: str,
        position: int,
        table_sync: TableSync,
    ) -> None:
        conn.execute(
            """
            INSERT INTO table_syncs (
                integration_id, id, position, name, source, mapping,
                contact_list_id, auto_sync, create_new_list, new_list_name,
                last_synced_at, last_sync_result, status, last_error
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(integration_id, id) DO UPDATE SET
                position = excluded.position,
                name = excluded.name,
                source = excluded.source,
                mapping = excluded.mapping,
                contact_list_id = excluded.contact_list_id,
                auto_sync = excluded.auto_sync,
                create_new_list = excluded.create_new_list,
                new_list_name = excluded.new_list_name,
                last_synced_at = excluded.last_synced_at,
                last_sync_result = excluded.last_sync_result,
                status = excluded.status,
                last_error = excluded.last_error
            """,
            (
                integration_id,
                table_sync.id,
                position,
                table_sync.name,
                _to_json(table_sync.source),
                _to_json(table_sync.mapping.to_dict()),
                table_sync.contact_list_id,
                table_sync.auto_sync,
                table_sync.create_new_list,
                table_sync.new_list_name,
                table_sync.last_synced_at,
                (
                    _to_json(table_sync.last_sync_result.to_dict())
                    if table_sync.last_sync_result
                    else None
                ),
                table_sync.status,
                table_sync.last_error,
            ),
        )

    def get_integration(self, integration_id: str) -> Optional[Integration]:
        """
        Get an integration with its TableSyncs.

        Returns:
            Integration, or None if not found
        """
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM integrations WHERE id = ?", (integration_id,)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_integration(conn, row)

    def list_integrations(
        self,
        provider: ProviderType | None = None,
        active_only: bool = False,
    ) -> list[Integration]:
        """
        List integrations, optionally restricted to one provider or to
        active integrations.
        """
        query = "SELECT * FROM integrations"
        conditions: list[str] = []
        params: list[str] = []
        if provider is not None:
            conditions.append("provider = ?")
            params.append(provider.value)
        if active_only:
            conditions.append("status = 'active'")
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at, id"

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_integration(conn, row) for row in rows]

    def delete_integration(self, integration_id: str) -> bool:
        """
        Delete an integration and its TableSyncs.

        Contacts synced by the integration are kept.

        Returns:
            True if an integration was deleted, False if not found
        """
        with self.connection() as conn:
            conn.execute(
                "DELETE FROM table_syncs WHERE integration_id = ?", (integration_id,)
            )
            conn.execute(
                "DELETE FROM sync_locks WHERE integration_id = ?", (integration_id,)
            )
            cursor = conn.execute(
                "DELETE FROM integrations WHERE id = ?", (integration_id,)
            )
            return cursor.rowcount > 0

    def set_integration_status(self, integration_id: str, status: str) -> bool:
        with self.connection() as conn:
            cursor = conn.execute(
                "UPDATE integrations SET status = ?, updated_at = ? WHERE id = ?",
                (status, utcnow(), integration_id),
            )
            return cursor.rowcount > 0

    def _row_to_integration(
        self, conn: sqlite3.Connection, row: sqlite3.Row
    ) -> Integration:
        sync_rows = conn.execute(
            "SELECT * FROM table_syncs WHERE integration_id = ? ORDER BY position",
            (row["id"],),
        ).fetchall()
        return Integration(
            id=row["id"],
            brand_id=row["brand_id"],
            user_id=row["user_id"],
            provider=ProviderType(row["provider"]),
            name=row["name"],
            status=row["status"],
            config=_from_json(row["config"]) or {},
            table_syncs=[self._row_to_table_sync(r) for r in sync_rows],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_table_sync(self, row: sqlite3.Row) -> TableSync:
        return TableSync(
            id=row["id"],
            name=row["name"],
            source=_from_json(row["source"]) or {},
            mapping=FieldMapping.from_dict(_from_json(row["mapping"])),
            contact_list_id=row["contact_list_id"],
            auto_sync=bool(row["auto_sync"]),
            create_new_list=bool(row["create_new_list"]),
            new_list_name=row["new_list_name"],
            last_synced_at=row["last_synced_at"],
            last_sync_result=SyncCounts.from_dict(_from_json(row["last_sync_result"])),
            status=row["status"],
            last_error=row["last_error"],
        )

    # =========================================================================
    # TableSync Result Operations
    # =========================================================================

    def record_sync_success(
        self,
        integration_id: str,
        sync_id: str,
        counts: SyncCounts,
        synced_at: datetime | None = None,
    ) -> None:
        """
        Persist a successful run: lastSyncedAt, lastSyncResult,
        status 'success' and a cleared lastError.
        """
        with self.connection() as conn:
            conn.execute(
                """
                UPDATE table_syncs SET
                    last_synced_at = ?,
                    last_sync_result = ?,
                    status = 'success',
                    last_error = NULL
                WHERE integration_id = ? AND id = ?
                """,
                (
                    synced_at or utcnow(),
                    _to_json(counts.to_dict()),
                    integration_id,
                    sync_id,
                ),
            )
            conn.execute(
                "UPDATE integrations SET updated_at = ? WHERE id = ?",
                (utcnow(), integration_id),
            )

    def record_sync_error(self, integration_id: str, sync_id: str, message: str) -> None:
        """
        Persist a terminal failure.

        lastSyncedAt and lastSyncResult keep the values of the last
        successful run.
        """
        with self.connection() as conn:
            conn.execute(
                """
                UPDATE table_syncs SET status = 'error', last_error = ?
                WHERE integration_id = ? AND id = ?
                """,
                (message, integration_id, sync_id),
            )

    def repoint_sync_list(self, integration_id: str, sync_id: str, list_id: str) -> None:
        """Point a TableSync at a new list and clear its createNewList flag."""
        with self.connection() as conn:
            conn.execute(
                """
                UPDATE table_syncs SET
                    contact_list_id = ?,
                    create_new_list = 0,
                    new_list_name = ''
                WHERE integration_id = ? AND id = ?
                """,
                (list_id, integration_id, sync_id),
            )

    # =========================================================================
    # Contact List Operations
    # =========================================================================

    def create_contact_list(
        self,
        brand_id: str,
        user_id: str,
        name: str,
        description: str = "",
        list_id: str | None = None,
    ) -> ContactList:
        """Create an empty contact list under a brand."""
        now = utcnow()
        contact_list = ContactList(
            id=list_id or uuid.uuid4().hex,
            brand_id=brand_id,
            user_id=user_id,
            name=name,
            description=description,
            contact_count=0,
            created_at=now,
            updated_at=now,
        )
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO contact_lists (
                    id, brand_id, user_id, name, description, contact_count,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    contact_list.id,
                    brand_id,
                    user_id,
                    name,
                    description,
                    now,
                    now,
                ),
            )
        return contact_list

    def get_contact_list(
        self, list_id: str, brand_id: str | None = None
    ) -> Optional[ContactList]:
        """
        Get a contact list, optionally requiring it to belong to a brand.

        Returns:
            ContactList, or None if not found (or owned by another brand)
        """
        query = "SELECT * FROM contact_lists WHERE id = ?"
        params: list[str] = [list_id]
        if brand_id is not None:
            query += " AND brand_id = ?"
            params.append(brand_id)

        with self.connection() as conn:
            row = conn.execute(query, params).fetchone()
            if row is None:
                return None
            return ContactList(**dict(row))

    def list_contact_lists(self, brand_id: str | None = None) -> list[ContactList]:
        query = "SELECT * FROM contact_lists"
        params: list[str] = []
        if brand_id is not None:
            query += " WHERE brand_id = ?"
            params.append(brand_id)
        query += " ORDER BY created_at, id"
        with self.connection() as conn:
            return [ContactList(**dict(row)) for row in conn.execute(query, params)]

    def recount_contact_list(self, list_id: str) -> int:
        """
        Recompute a list's contactCount from the contacts table.

        Returns:
            The fresh count
        """
        with self.connection() as conn:
            count: int = conn.execute(
                "SELECT COUNT(*) FROM contacts WHERE list_id = ?", (list_id,)
            ).fetchone()[0]
            conn.execute(
                "UPDATE contact_lists SET contact_count = ?, updated_at = ? WHERE id = ?",
                (count, utcnow(), list_id),
            )
            return count

    # =========================================================================
    # Contact Operations
    # =========================================================================

    def bulk_upsert_contacts(
        self, operations: Iterable[UpsertOperation]
    ) -> BulkWriteResult:
        """
        Execute upserts keyed by (email, list_id) in one transaction.

        Operations run in order, so a later operation on the same key sees
        (and may overwrite) an earlier one. A matched contact whose fields
        already hold the requested values is left untouched, updated_at
        included.

        Raises:
            sqlite3.Error: If any statement fails; the whole batch is
                rolled back.
        """
        result = BulkWriteResult()
        with self.connection() as conn:
            for op in operations:
                for column in (*op.set_fields, *op.on_insert):
                    if column not in CONTACT_FIELDS:
                        raise ValueError(f"Unknown contact field: {column}")

                existing = conn.execute(
                    "SELECT * FROM contacts WHERE email = ? AND list_id = ?",
                    (op.email, op.list_id),
                ).fetchone()

                if existing is None:
                    values = {**op.on_insert, **op.set_fields}
                    columns = ["email", "list_id", *values, "created_at", "updated_at"]
                    conn.execute(
                        f"INSERT INTO contacts ({', '.join(columns)}) "  # nosec B608
                        f"VALUES ({', '.join('?' for _ in columns)})",
                        [op.email, op.list_id, *values.values(), op.updated_at, op.updated_at],
                    )
                    result.upserted += 1
                    continue

                result.matched += 1
                changed = {
                    column: value
                    for column, value in op.set_fields.items()
                    if existing[column] != value
                }
                if not changed:
                    continue

                assignments = ", ".join(f"{column} = ?" for column in changed)
                conn.execute(
                    f"UPDATE contacts SET {assignments}, updated_at = ? "  # nosec B608
                    "WHERE id = ?",
                    [*changed.values(), op.updated_at, existing["id"]],
                )
                result.modified += 1
        return result

    def count_contacts(self, list_id: str) -> int:
        with self.connection() as conn:
            result: int = conn.execute(
                "SELECT COUNT(*) FROM contacts WHERE list_id = ?", (list_id,)
            ).fetchone()[0]
            return result

    def existing_emails(self, list_id: str, emails: Iterable[str]) -> set[str]:
        """Return the subset of emails that already have a contact in the list."""
        wanted = list(dict.fromkeys(emails))
        if not wanted:
            return set()
        found: set[str] = set()
        with self.connection() as conn:
            # Stay under SQLite's bound-parameter limit
            for start in range(0, len(wanted), 500):
                chunk = wanted[start : start + 500]
                placeholders = ", ".join("?" for _ in chunk)
                cursor = conn.execute(
                    f"SELECT email FROM contacts WHERE list_id = ? "  # nosec B608
                    f"AND email IN ({placeholders})",
                    [list_id, *chunk],
                )
                found.update(row["email"] for row in cursor.fetchall())
        return found

    def get_contact(self, email: str, list_id: str) -> Optional[dict[str, Any]]:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM contacts WHERE email = ? AND list_id = ?",
                (email, list_id),
            ).fetchone()
            return dict(row) if row else None

    def get_contacts(self, list_id: str) -> list[dict[str, Any]]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM contacts WHERE list_id = ? ORDER BY email", (list_id,)
            )
            return [dict(row) for row in cursor.fetchall()]

    def set_contact_status(self, email: str, list_id: str, status: str) -> bool:
        """Change a contact's status (e.g. after an unsubscribe)."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE contacts SET status = ?, updated_at = ?
                WHERE email = ? AND list_id = ?
                """,
                (status, utcnow(), email, list_id),
            )
            return cursor.rowcount > 0

    # =========================================================================
    # Sync Lock Operations
    # =========================================================================

    def acquire_sync_lock(
        self,
        integration_id: str,
        sync_id: str | None,
        job_id: str,
        ttl_seconds: int,
        now: datetime | None = None,
    ) -> bool:
        """
        Take the in-flight marker for one (integration, sync) pair.

        An expired marker, or one already held by job_id, is taken over.

        Returns:
            True if the marker is now held by job_id
        """
        now = now or utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds)
        key = sync_id or LOCK_IMPLICIT_SYNC
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO sync_locks (integration_id, sync_id, job_id, expires_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(integration_id, sync_id) DO UPDATE SET
                    job_id = excluded.job_id,
                    expires_at = excluded.expires_at
                WHERE sync_locks.expires_at <= ? OR sync_locks.job_id = excluded.job_id
                """,
                (integration_id, key, job_id, expires_at, now),
            )
            row = conn.execute(
                "SELECT job_id FROM sync_locks WHERE integration_id = ? AND sync_id = ?",
                (integration_id, key),
            ).fetchone()
            return row is not None and row["job_id"] == job_id

    def release_sync_lock(
        self, integration_id: str, sync_id: str | None, job_id: str
    ) -> bool:
        """Release the in-flight marker if job_id still holds it."""
        with self.connection() as conn:
            cursor = conn.execute(
                """
                DELETE FROM sync_locks
                WHERE integration_id = ? AND sync_id = ? AND job_id = ?
                """,
                (integration_id, sync_id or LOCK_IMPLICIT_SYNC, job_id),
            )
            return cursor.rowcount > 0

    # =========================================================================
    # Utility Operations
    # =========================================================================

    def vacuum(self) -> None:
        """Vacuum the database to reclaim space after pruning."""
        with self.connection() as conn:
            conn.execute("VACUUM")
