"""
Canonical contact candidate produced by the field mapper.

A ContactCandidate is what one raw provider record contributes to a
contact list; it is turned into an UpsertOperation by the reconciler.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Final, Optional

from listsync.utils.normalization import normalize_email


class _Skip(enum.Enum):
    SKIP = "skip"

    def __repr__(self) -> str:
        return "SKIP"


# Returned by the field mapper for records without a usable email
SKIP: Final = _Skip.SKIP


def is_usable_email(email: str) -> bool:
    """
    Minimal email check: non-empty and containing '@'.

    Not an RFC validator; anything the provider accepted and that looks
    like an address is kept.
    """
    return bool(email) and "@" in email


@dataclass
class ContactCandidate:
    """
    Normalized contact fields from one provider record.

    Attributes:
        email: Trimmed, lowercased email (dedup key with the list id)
        first_name: First name ("" when unmapped or absent)
        last_name: Last name ("" when unmapped or absent)
        phone: Phone number ("" when unmapped or absent)
        disabled: Identity provider only: upstream account is disabled
        last_modified: Identity provider only: upstream last refresh time
    """

    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    disabled: bool = False
    last_modified: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)
