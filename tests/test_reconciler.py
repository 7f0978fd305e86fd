"""
Tests for the reconciler.

Covers batching, the count invariant, idempotent re-runs and the
identity-provider status policy.
"""

import sqlite3
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from listsync.config.integration_config import FieldMapping
from listsync.sync.errors import BatchWriteError
from listsync.sync.mapper import FieldMapper
from listsync.sync.reconciler import ReconcileTarget, Reconciler

T0 = datetime(2024, 6, 1, 12, 0, 0)

MAPPER = FieldMapper(FieldMapping(email="Email", first_name="First"))
IDENTITY_MAPPER = FieldMapper(
    FieldMapping(email="email", first_name="firstName"), identity=True
)


def target(**kwargs):
    kwargs.setdefault("list_id", "list-1")
    kwargs.setdefault("brand_id", "brand-1")
    kwargs.setdefault("user_id", "user-1")
    return ReconcileTarget(**kwargs)


def assert_accounted(counts):
    assert (
        counts.imported_count + counts.updated_count + counts.skipped_count
        == counts.total_count
    )


@pytest.fixture
def reconciler(db, contact_list):
    return Reconciler(db, batch_size=100, clock=lambda: T0)


class TestReconcile:
    """Tests for Reconciler.reconcile()."""

    def test_mixed_records(self, db, reconciler):
        records = [{"Email": "a@x.com"}, {"Email": ""}, {"Email": "C@X.com "}]
        counts = reconciler.reconcile(records, MAPPER, target())

        assert counts.imported_count == 2
        assert counts.updated_count == 0
        assert counts.skipped_count == 1
        assert counts.total_count == 3
        assert {c["email"] for c in db.get_contacts("list-1")} == {
            "a@x.com",
            "c@x.com",
        }

    def test_new_contacts_are_active_and_scoped(self, db, reconciler):
        reconciler.reconcile([{"Email": "a@x.com", "First": "Ann"}], MAPPER, target())
        contact = db.get_contact("a@x.com", "list-1")
        assert contact["status"] == "active"
        assert contact["brand_id"] == "brand-1"
        assert contact["user_id"] == "user-1"
        assert contact["first_name"] == "Ann"
        assert contact["updated_at"] == T0

    def test_empty_source(self, reconciler):
        counts = reconciler.reconcile([], MAPPER, target())
        assert counts.total_count == 0
        assert_accounted(counts)

    def test_batches_of_configured_size(self, db, reconciler):
        records = [{"Email": f"user{i}@x.com"} for i in range(250)]
        batches = []
        original = db.bulk_upsert_contacts

        def spy(operations):
            operations = list(operations)
            batches.append(len(operations))
            return original(operations)

        with patch.object(db, "bulk_upsert_contacts", side_effect=spy):
            counts = reconciler.reconcile(records, MAPPER, target())

        assert batches == [100, 100, 50]
        assert counts.imported_count == 250

    def test_on_batch_called_per_batch(self, reconciler):
        records = [{"Email": f"user{i}@x.com"} for i in range(150)]
        calls = []
        reconciler.reconcile(
            records,
            MAPPER,
            target(),
            on_batch=lambda number, counts: calls.append(
                (number, counts.imported_count)
            ),
        )
        assert calls == [(1, 100), (2, 150)]

    def test_invalid_batch_size(self, db):
        with pytest.raises(ValueError, match="batch_size"):
            Reconciler(db, batch_size=0)


class TestIdempotence:
    """Tests for re-running a sync over the same source."""

    RECORDS = [
        {"Email": "a@x.com", "First": "Ann"},
        {"Email": "b@x.com", "First": "Bo"},
        {"Email": "broken"},
    ]

    def test_second_run_changes_nothing(self, db, reconciler):
        reconciler.reconcile(self.RECORDS, MAPPER, target())
        before = db.get_contacts("list-1")

        counts = reconciler.reconcile(self.RECORDS, MAPPER, target())

        assert counts.imported_count == 0
        assert counts.updated_count == 0
        assert counts.skipped_count == 3
        assert_accounted(counts)
        assert db.get_contacts("list-1") == before

    def test_changed_field_counted_as_update(self, db, reconciler):
        reconciler.reconcile(self.RECORDS, MAPPER, target())
        changed = [{"Email": "a@x.com", "First": "Anne"}, {"Email": "b@x.com", "First": "Bo"}]

        counts = reconciler.reconcile(changed, MAPPER, target())

        assert counts.updated_count == 1
        assert counts.skipped_count == 1
        assert db.get_contact("a@x.com", "list-1")["first_name"] == "Anne"

    def test_duplicate_email_in_source_converges(self, db, reconciler):
        records = [{"Email": "a@x.com", "First": "One"}, {"Email": "A@X.com", "First": "Two"}]
        counts = reconciler.reconcile(records, MAPPER, target())

        assert db.count_contacts("list-1") == 1
        assert db.get_contact("a@x.com", "list-1")["first_name"] == "Two"
        assert_accounted(counts)

    def test_unsubscribed_status_preserved(self, db, reconciler):
        reconciler.reconcile(self.RECORDS, MAPPER, target())
        db.set_contact_status("a@x.com", "list-1", "unsubscribed")

        reconciler.reconcile(self.RECORDS, MAPPER, target())
        assert db.get_contact("a@x.com", "list-1")["status"] == "unsubscribed"


class TestIdentityPolicy:
    """Tests for identity-provider records."""

    def test_disabled_user_forced_inactive(self, db, reconciler):
        reconciler.reconcile(
            [{"email": "a@x.com"}], IDENTITY_MAPPER, target(identity=True)
        )
        counts = reconciler.reconcile(
            [{"email": "a@x.com", "disabled": True}],
            IDENTITY_MAPPER,
            target(identity=True),
        )
        assert counts.updated_count == 1
        assert db.get_contact("a@x.com", "list-1")["status"] == "inactive"

    def test_disabled_new_user_inserted_inactive(self, db, reconciler):
        reconciler.reconcile(
            [{"email": "a@x.com", "disabled": True}],
            IDENTITY_MAPPER,
            target(identity=True),
        )
        assert db.get_contact("a@x.com", "list-1")["status"] == "inactive"

    def test_disabled_flag_ignored_for_tabular_sources(self, db, reconciler):
        reconciler.reconcile(
            [{"Email": "a@x.com", "disabled": True}], MAPPER, target()
        )
        assert db.get_contact("a@x.com", "list-1")["status"] == "active"

    def test_incremental_skip_only_skips_known_contacts(self, db, reconciler):
        since = T0 - timedelta(days=1)
        old = {"email": "old@x.com", "lastModified": "2024-05-01T00:00:00Z"}
        reconciler.reconcile([old], IDENTITY_MAPPER, target(identity=True))

        records = [
            old,
            {"email": "stale@x.com", "lastModified": "2024-05-01T00:00:00Z"},
            {"email": "new@x.com", "lastModified": "2024-06-01T00:00:00Z"},
            {"email": "unknown@x.com"},
        ]
        with patch.object(db, "existing_emails", wraps=db.existing_emails) as lookup:
            counts = reconciler.reconcile(
                records,
                IDENTITY_MAPPER,
                target(identity=True, incremental_since=since),
            )

        lookup.assert_called_once_with("list-1", ["old@x.com", "stale@x.com"])
        assert counts.imported_count == 3
        assert counts.skipped_count == 1
        assert_accounted(counts)
        # Unrefreshed but absent from the list: still written
        assert db.get_contact("stale@x.com", "list-1") is not None

    def test_incremental_skip_never_skips_disabled(self, db, reconciler):
        since = T0 - timedelta(days=1)
        reconciler.reconcile(
            [{"email": "dis@x.com"}], IDENTITY_MAPPER, target(identity=True)
        )
        counts = reconciler.reconcile(
            [{"email": "dis@x.com", "disabled": True,
              "lastModified": "2024-05-01T00:00:00Z"}],
            IDENTITY_MAPPER,
            target(identity=True, incremental_since=since),
        )
        assert counts.updated_count == 1
        assert db.get_contact("dis@x.com", "list-1")["status"] == "inactive"

    def test_incremental_skip_matches_full_run(self, db, reconciler):
        since = T0 - timedelta(days=1)
        db.create_contact_list("brand-1", "user-1", "Copy", list_id="list-2")
        seed = [{"email": "dis@x.com", "firstName": "Dee"}]
        records = [
            {"email": "dis@x.com", "firstName": "Dee", "disabled": True,
             "lastModified": "2024-05-01T00:00:00Z"},
            {"email": "old@x.com", "lastModified": "2024-05-01T00:00:00Z"},
            {"email": "new@x.com", "lastModified": "2024-06-01T00:00:00Z"},
        ]

        def end_state(list_id, incremental_since):
            reconciler.reconcile(
                seed, IDENTITY_MAPPER, target(list_id=list_id, identity=True)
            )
            reconciler.reconcile(
                records,
                IDENTITY_MAPPER,
                target(list_id=list_id, identity=True,
                       incremental_since=incremental_since),
            )
            return [
                (c["email"], c["first_name"], c["status"])
                for c in db.get_contacts(list_id)
            ]

        assert end_state("list-1", since) == end_state("list-2", None)
        assert ("dis@x.com", "Dee", "inactive") in end_state("list-1", since)

    def test_lookup_failure_wrapped(self, db, reconciler):
        records = [{"email": "old@x.com", "lastModified": "2024-05-01T00:00:00Z"}]
        with patch.object(
            db, "existing_emails", side_effect=sqlite3.OperationalError("locked")
        ):
            with pytest.raises(BatchWriteError) as exc_info:
                reconciler.reconcile(
                    records,
                    IDENTITY_MAPPER,
                    target(identity=True, incremental_since=T0),
                )
        assert exc_info.value.batch_number == 1


class TestBatchFailures:
    """Tests for bulk upsert failures."""

    def test_sqlite_error_wrapped(self, db, reconciler):
        records = [{"Email": f"user{i}@x.com"} for i in range(150)]
        original = db.bulk_upsert_contacts
        calls = []

        def failing_second(operations):
            calls.append(1)
            if len(calls) == 2:
                raise sqlite3.OperationalError("database is locked")
            return original(operations)

        with patch.object(db, "bulk_upsert_contacts", side_effect=failing_second):
            with pytest.raises(BatchWriteError) as exc_info:
                reconciler.reconcile(records, MAPPER, target())

        assert exc_info.value.batch_number == 2
        assert exc_info.value.batch_size == 50
        assert exc_info.value.retryable is True
        # The first batch stays committed
        assert db.count_contacts("list-1") == 100
