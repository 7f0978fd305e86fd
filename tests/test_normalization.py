"""Tests for contact field normalization and time helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from listsync.utils.normalization import (
    normalize_email,
    split_display_name,
    to_field_string,
)
from listsync.utils.timeutil import (
    from_epoch_millis,
    parse_timestamp,
    to_naive_utc,
    utcnow,
)


class TestNormalizeEmail:
    """Test email normalization used as the contact dedup key."""

    def test_lowercases_and_trims(self):
        """Case and surrounding whitespace are dropped."""
        assert normalize_email("  C@X.com ") == "c@x.com"

    def test_none_is_empty(self):
        """None normalizes to an empty string."""
        assert normalize_email(None) == ""

    def test_non_string_is_stringified(self):
        """Numbers and other scalars are converted to strings."""
        assert normalize_email(42) == "42"

    def test_idempotent(self):
        """Normalizing twice gives the same result."""
        once = normalize_email(" Ada@Example.COM")
        assert normalize_email(once) == once


class TestToFieldString:
    """Test provider value conversion into contact field strings."""

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_values(self, value):
        """Missing values become empty strings."""
        assert to_field_string(value) == ""

    def test_trims_strings(self):
        """Strings are trimmed."""
        assert to_field_string("  Ada ") == "Ada"

    def test_numbers(self):
        """Numbers are stringified (phone numbers stored as numbers)."""
        assert to_field_string(5551234) == "5551234"

    def test_lists_are_joined(self):
        """Multi-value cells are joined, skipping empty entries."""
        assert to_field_string(["a", "", None, "b"]) == "a, b"

    def test_booleans(self):
        """Booleans become lowercase words."""
        assert to_field_string(True) == "true"
        assert to_field_string(False) == "false"


class TestSplitDisplayName:
    """Test display name splitting for identity-provider users."""

    def test_first_and_last(self):
        assert split_display_name("Ada Lovelace") == ("Ada", "Lovelace")

    def test_splits_on_first_space(self):
        """Everything after the first space is the last name."""
        assert split_display_name("Jean Luc Picard") == ("Jean", "Luc Picard")

    def test_single_word(self):
        assert split_display_name("Cher") == ("Cher", "")

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty(self, value):
        assert split_display_name(value) == ("", "")


class TestTimeHelpers:
    """Test naive-UTC time helpers."""

    def test_utcnow_is_naive(self):
        """utcnow returns a naive datetime close to the real UTC time."""
        now = utcnow()
        assert now.tzinfo is None
        real = datetime.now(timezone.utc).replace(tzinfo=None)
        assert abs(real - now) < timedelta(seconds=5)

    def test_to_naive_utc_converts_offsets(self):
        """Aware datetimes are converted to UTC before dropping tzinfo."""
        aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_naive_utc(aware) == datetime(2024, 1, 1, 10, 0)

    def test_from_epoch_millis(self):
        assert from_epoch_millis(0) == datetime(1970, 1, 1)
        assert from_epoch_millis(1_700_000_000_000) == datetime(
            2023, 11, 14, 22, 13, 20
        )

    def test_from_epoch_millis_none(self):
        assert from_epoch_millis(None) is None

    def test_parse_timestamp_with_z_suffix(self):
        """Trailing Z is accepted as UTC."""
        assert parse_timestamp("2024-03-01T08:30:00Z") == datetime(2024, 3, 1, 8, 30)

    def test_parse_timestamp_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_parse_timestamp_invalid(self):
        """Invalid strings raise ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")
