"""Relation lookups that record what is missing instead of failing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from recordsync.domain.model import DependencyRef, sorted_by_id

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from recordsync.domain.model import MirroredRecord
    from recordsync.domain.ports import EntityStore


@dataclass(frozen=True, slots=True)
class Link:
    """A link row (e.g. a curriculum membership) paired with the record it points at."""

    via: MirroredRecord
    target: MirroredRecord


@dataclass(slots=True)
class Resolution:
    """Everything found for one member row, plus the relations that were absent."""

    member: MirroredRecord
    related: dict[str, MirroredRecord] = field(default_factory=dict["str", "MirroredRecord"])
    links: dict[str, list[Link]] = field(default_factory=dict["str", "list[Link]"])
    missing: list[DependencyRef] = field(default_factory=list["DependencyRef"])

    @property
    def complete(self) -> bool:
        return not self.missing

    def get(self, name: str) -> MirroredRecord | None:
        return self.related.get(name)

    def linked(self, name: str) -> list[Link]:
        return self.links.get(name, [])


def merge_missing(resolutions: Iterable[Resolution]) -> list[DependencyRef]:
    """Union of the missing relations, first occurrence order, duplicates removed."""

    return list(dict.fromkeys(ref for resolution in resolutions for ref in resolution.missing))


class RelationResolver:
    """Looks relations up in the entity store on behalf of an orchestrator.

    An absent foreign key means the relation does not apply. An absent target means the
    relation is missing and gets recorded on the resolution.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def reference(
        self,
        resolution: Resolution,
        name: str,
        entity_type: str,
        natural_id: str | None,
        *,
        required: bool = True,
    ) -> MirroredRecord | None:
        if natural_id is None:
            return None
        found = self._store.find_by_id(entity_type, natural_id)
        if found is None:
            if required:
                resolution.missing.append(DependencyRef(entity_type, natural_id))
            return None
        resolution.related[name] = found
        return found

    def children(
        self, entity_type: str, attribute: str, parent_id: str
    ) -> tuple[MirroredRecord, ...]:
        return sorted_by_id(self._store.find_by_relation(entity_type, attribute, parent_id))

    def links(
        self,
        resolution: Resolution,
        name: str,
        vias: Iterable[MirroredRecord],
        target_type: str,
        target_attribute: str,
        *,
        accept: Callable[[MirroredRecord], bool] | None = None,
    ) -> list[Link]:
        """Follow ``target_attribute`` from every accepted link row to ``target_type``."""

        found: list[Link] = []
        for via in vias:
            if accept is not None and not accept(via):
                continue
            target_id = via.get(target_attribute)
            if target_id is None:
                continue
            target = self._store.find_by_id(target_type, target_id)
            if target is None:
                resolution.missing.append(DependencyRef(target_type, target_id))
                continue
            found.append(Link(via, target))
        resolution.links[name] = found
        return found

    def require_children(
        self,
        resolution: Resolution,
        entity_type: str,
        attribute: str,
        parent_id: str,
    ) -> tuple[MirroredRecord, ...]:
        """Children that must exist; none at all is recorded as a where-clause request."""

        rows = self.children(entity_type, attribute, parent_id)
        if not rows:
            where: Mapping[str, str] = {attribute: parent_id}
            resolution.missing.append(DependencyRef(entity_type, parent_id, where))
        return rows
