"""Ordering keys for outbound messages.

Every message is keyed by the root aggregate it belongs to, so that a dependent's update
and its root's reload are consumed in relative order.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from recordsync.domain.model import DEFAULT_SCHEMA, MirroredRecord

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)

KEY_FORMAT: Final[str] = "%s_%s_%s"


@dataclass(frozen=True, slots=True)
class RootReference:
    """Which attribute of a dependent type points at which root type."""

    root_type: str
    attribute: str


DEFAULT_ROOT_REFERENCES: Final[Mapping[str, RootReference]] = MappingProxyType(
    {
        "ConditionsOfJoining": RootReference("ProgrammeMembership", "programmeMembershipUuid"),
        "CurriculumMembership": RootReference("ProgrammeMembership", "programmeMembershipUuid"),
        "PlacementSite": RootReference("Placement", "placementId"),
        "PlacementSpecialty": RootReference("Placement", "placementId"),
        "PostSpecialty": RootReference("Post", "postId"),
        "Qualification": RootReference("Person", "personId"),
    }
)


class FifoGroupResolver:
    """Maps records and aggregates to their root's ordering key. Never raises."""

    def __init__(
        self, references: Mapping[str, RootReference] = DEFAULT_ROOT_REFERENCES
    ) -> None:
        self._references = references

    def root_of(self, record: MirroredRecord) -> tuple[str, str] | None:
        """``(root_type, root_id)`` for a dependent record, ``None`` if unresolvable."""

        reference = self._references.get(record.table_name)
        if reference is None:
            return None
        root_id = record.get(reference.attribute)
        if root_id is None:
            return None
        return reference.root_type, root_id

    def group_key_of(self, item: object) -> str:
        record = _as_record(item)
        if record is None:
            return _fallback_key(item)
        if record.table_name not in self._references:
            return KEY_FORMAT % (record.schema_name, record.table_name, record.natural_id)
        root = self.root_of(record)
        if root is None:
            log.error(
                "%s '%s' has no root reference, falling back to its own id",
                record.table_name,
                record.natural_id,
            )
            return KEY_FORMAT % (record.schema_name, record.table_name, record.natural_id)
        root_type, root_id = root
        return KEY_FORMAT % (record.schema_name, root_type, root_id)


_default_resolver = FifoGroupResolver()


def group_key_of(item: object) -> str:
    return _default_resolver.group_key_of(item)


def _as_record(item: object) -> MirroredRecord | None:
    if isinstance(item, MirroredRecord):
        return item
    to_record = getattr(item, "to_record", None)
    if not callable(to_record):
        return None
    try:
        record = to_record()
    except Exception:
        log.exception("Could not read %s for group key", type(item).__name__)
        return None
    return record if isinstance(record, MirroredRecord) else None


def _fallback_key(item: object) -> str:
    schema = getattr(item, "schema_name", None) or DEFAULT_SCHEMA
    try:
        own_id = getattr(item, "natural_id", None) or getattr(item, "id", None) or ""
    except Exception:
        log.exception("Unreadable id on %s", type(item).__name__)
        own_id = ""
    log.error("Unrecognised message type %s, using fallback group key", type(item).__name__)
    return KEY_FORMAT % (schema, type(item).__name__, own_id)
