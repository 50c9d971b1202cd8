"""Short-lived bookkeeping values for dependency requests and deletions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from .record import MirroredRecord


@dataclass(frozen=True, slots=True)
class DependencyRef:
    """A relation that could not be resolved from the local store.

    ``lookup_key`` is the value the request is deduplicated on; for plain id lookups it
    equals the natural id, for where-clause lookups it is the where value.
    """

    entity_type: str
    lookup_key: str
    where: Mapping[str, str] = field(default_factory=dict["str", "str"], compare=False)

    def where_clause(self) -> dict[str, str]:
        return dict(self.where) if self.where else {"id": self.lookup_key}


@dataclass(frozen=True, slots=True)
class PendingRequestToken:
    """An in-flight "send me entity X" request held by the dedup cache."""

    entity_type: str
    natural_id: str
    requested_at: datetime


def request_cache_key(entity_type: str, natural_id: str) -> str:
    return f"{entity_type}:{natural_id}"


@dataclass(frozen=True, slots=True)
class DeletionSnapshot:
    """Full copy of a record taken immediately before its row is deleted."""

    record: MirroredRecord
    taken_at: datetime
