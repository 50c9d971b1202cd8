"""Similarity grouping of rows that represent one logical membership.

A membership the upstream system splits across several rows (one per curriculum) is
reassembled by matching five attributes exactly. Grouping is the strict conjunction of
all five; partial matches never join a group and grouping is not transitive.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol

from recordsync.domain.model import sorted_by_id

if TYPE_CHECKING:
    from collections.abc import Iterable

    from recordsync.domain.model import MirroredRecord
    from recordsync.domain.ports import EntityStore

SIMILARITY_FIELDS: Final[tuple[str, ...]] = (
    "personId",
    "programmeId",
    "programmeMembershipType",
    "programmeStartDate",
    "programmeEndDate",
)


@dataclass(frozen=True, slots=True)
class SimilarityKey:
    person_id: str
    programme_id: str
    membership_type: str
    start_date: str
    end_date: str

    @classmethod
    def of(cls, record: MirroredRecord) -> SimilarityKey | None:
        """Key of ``record``, or ``None`` when any of the five fields is absent."""

        values = [record.get(name) for name in SIMILARITY_FIELDS]
        if any(value is None for value in values):
            return None
        person_id, programme_id, membership_type, start_date, end_date = (
            str(value) for value in values
        )
        return cls(person_id, programme_id, membership_type, start_date, end_date)

    def criteria(self) -> dict[str, str]:
        return dict(
            zip(
                SIMILARITY_FIELDS,
                (
                    self.person_id,
                    self.programme_id,
                    self.membership_type,
                    self.start_date,
                    self.end_date,
                ),
                strict=True,
            )
        )


class Grouper(Protocol):
    def group_of(
        self, record: MirroredRecord, *, include_self: bool = True
    ) -> tuple[MirroredRecord, ...]: ...


class SimilarityGrouper:
    """Finds the rows sharing a record's similarity key through the entity store."""

    def __init__(self, store: EntityStore, record_type: str) -> None:
        self._store = store
        self._record_type = record_type

    def find_group(self, key: SimilarityKey) -> tuple[MirroredRecord, ...]:
        return sorted_by_id(self._store.find_by_attributes(self._record_type, key.criteria()))

    def group_of(
        self, record: MirroredRecord, *, include_self: bool = True
    ) -> tuple[MirroredRecord, ...]:
        """Rows of ``record``'s logical membership.

        With ``include_self`` the record itself is always part of the result, even when
        it has not been stored yet. Without it the result holds only its siblings, which
        is what a post-delete rebuild needs.
        """

        key = SimilarityKey.of(record)
        if key is None:
            return (record,) if include_self else ()
        siblings = [
            member for member in self.find_group(key) if member.natural_id != record.natural_id
        ]
        if include_self:
            siblings.append(record)
        return sorted_by_id(siblings)


class SingletonGrouper:
    """Grouper for families whose rows never merge."""

    def group_of(
        self, record: MirroredRecord, *, include_self: bool = True
    ) -> tuple[MirroredRecord, ...]:
        return (record,) if include_self else ()


def partition_into_groups(
    records: Iterable[MirroredRecord], grouper: Grouper
) -> list[tuple[MirroredRecord, ...]]:
    """Split ``records`` into distinct groups, one entry per logical membership.

    Records already covered by an earlier group are skipped, so each group appears once
    regardless of how many of its members are in ``records``.
    """

    covered: set[str] = set()
    groups: list[tuple[MirroredRecord, ...]] = []
    for record in sorted_by_id(records):
        if record.natural_id in covered:
            continue
        group = grouper.group_of(record)
        covered.update(member.natural_id for member in group)
        groups.append(group)
    return groups
