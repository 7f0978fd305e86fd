"""
Field mapper: raw provider record -> ContactCandidate.

The mapping names, for each canonical contact field, the provider field
holding it. Records without a usable email map to SKIP.
"""

from __future__ import annotations

import logging
from typing import Any, Union

from listsync.config.integration_config import FieldMapping
from listsync.sync.contact import SKIP, ContactCandidate, _Skip, is_usable_email
from listsync.utils.normalization import normalize_email, to_field_string
from listsync.utils.timeutil import parse_timestamp

logger = logging.getLogger(__name__)

ProjectionResult = Union[ContactCandidate, _Skip]


class FieldMapper:
    """
    Projects raw records onto the canonical contact schema.

    Usage:
        mapper = FieldMapper(FieldMapping(email="Email", first_name="First"))
        candidate = mapper.project({"Email": " Ada@Example.com", "First": "Ada"})
        if candidate is SKIP:
            ...

    Attributes:
        mapping: Provider field names for each contact field
        identity: Carry the identity-provider flags (disabled, lastModified)
    """

    def __init__(self, mapping: FieldMapping, identity: bool = False):
        self.mapping = mapping
        self.identity = identity

    @staticmethod
    def _field(record: dict[str, Any], key: str | None) -> str:
        if not key:
            return ""
        return to_field_string(record.get(key))

    def project(self, record: dict[str, Any]) -> ProjectionResult:
        """
        Project one raw record.

        Returns:
            ContactCandidate, or SKIP if the email is missing, empty or
            lacks '@'
        """
        if not self.mapping.has_email():
            return SKIP

        raw_email = record.get(self.mapping.email)
        if isinstance(raw_email, (list, tuple)):
            # Multi-value cells: the first entry is the address
            raw_email = raw_email[0] if raw_email else None
        email = normalize_email(raw_email)
        if not is_usable_email(email):
            return SKIP

        candidate = ContactCandidate(
            email=email,
            first_name=self._field(record, self.mapping.first_name),
            last_name=self._field(record, self.mapping.last_name),
            phone=self._field(record, self.mapping.phone),
        )

        if self.identity:
            candidate.disabled = bool(record.get("disabled", False))
            last_modified = record.get("lastModified")
            try:
                candidate.last_modified = parse_timestamp(last_modified)
            except (AttributeError, TypeError, ValueError):
                logger.debug(f"Ignoring unparseable lastModified: {last_modified!r}")

        return candidate


def project(
    record: dict[str, Any], mapping: FieldMapping, identity: bool = False
) -> ProjectionResult:
    """Project one raw record with a one-off FieldMapper."""
    return FieldMapper(mapping, identity=identity).project(record)
