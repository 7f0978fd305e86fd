"""
String normalization utilities for contact fields.

Provides the email normalization used as the contact dedup key and the
helpers used to turn provider values into contact field strings.
"""

from __future__ import annotations

from typing import Any


def normalize_email(value: Any) -> str:
    """
    Normalize an email address for use as a dedup key.

    Args:
        value: Raw provider value (any type; None allowed)

    Returns:
        Trimmed, lowercased string, or "" when value is empty
    """
    if value is None:
        return ""
    return str(value).strip().lower()


def to_field_string(value: Any) -> str:
    """
    Convert a raw provider value into a trimmed contact field string.

    None, empty strings and False-y containers become "".
    Lists (e.g. Airtable multi-value cells) are joined with ", ".
    """
    if value is None or value == "":
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(to_field_string(v) for v in value if v not in (None, ""))
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def split_display_name(display_name: str | None) -> tuple[str, str]:
    """
    Split a display name into first and last name on the first space.

    Examples:
        "Ada Lovelace" -> ("Ada", "Lovelace")
        "Jean Luc Picard" -> ("Jean", "Luc Picard")
        "Cher" -> ("Cher", "")
    """
    if not display_name:
        return "", ""
    first, _, rest = display_name.strip().partition(" ")
    return first, rest.strip()
