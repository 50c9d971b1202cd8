"""Ports for the mirrored entity store and deletion snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from recordsync.domain.model import MirroredRecord


@runtime_checkable
class EntityStore(Protocol):
    """Generic per-type persistence with point and relational lookups.

    Multi-row results are returned ordered by natural id so callers iterate them
    deterministically.
    """

    def find_by_id(self, table_name: str, natural_id: str) -> MirroredRecord | None: ...

    def find_by_relation(
        self, table_name: str, attribute: str, related_id: str
    ) -> Sequence[MirroredRecord]: ...

    def find_by_attributes(
        self, table_name: str, criteria: Mapping[str, str]
    ) -> Sequence[MirroredRecord]: ...

    def save(self, record: MirroredRecord) -> None: ...

    def delete_by_id(self, table_name: str, natural_id: str) -> bool: ...


@runtime_checkable
class SnapshotStore(Protocol):
    """Holds full copies of records taken right before their rows are deleted."""

    def get(self, table_name: str, natural_id: str) -> MirroredRecord | None: ...

    def put(self, record: MirroredRecord) -> None: ...

    def evict(self, table_name: str, natural_id: str) -> None: ...
