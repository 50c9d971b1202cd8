"""Shared reconciliation flow for every aggregate family.

Each family supplies how a member row is resolved and how a resolved group becomes an
aggregate. The base class owns the three trigger kinds:

- direct: the member changed; invalidate the person, publish the trigger's group and
  republish every other group of the person once
- parent: a referenced record changed; republish each affected group once
- deletion: publish a tombstone for the deleted row and rebuild any surviving siblings

An aggregate is only published when every member of its group resolved completely;
otherwise the missing relations are requested and the group is skipped.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from logging import getLogger
from typing import TYPE_CHECKING, ClassVar

from recordsync.domain.errors import PublishError, WrongRecordFamilyError
from recordsync.domain.model import DEFAULT_SCHEMA, Tombstone, sorted_by_id
from recordsync.domain.similarity import SimilarityGrouper, partition_into_groups

from .resolution import RelationResolver, Resolution, merge_missing

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from recordsync.domain.model import Aggregate, MirroredRecord
    from recordsync.domain.ports import EntityStore
    from recordsync.domain.publishing import DownstreamPublisher
    from recordsync.domain.requests import DependencyRequester
    from recordsync.domain.similarity import Grouper

log = getLogger(__name__)


class Enricher(ABC):
    """Reconciliation state machine for one aggregate family."""

    member_type: ClassVar[str]
    person_attribute: ClassVar[str] = "personId"
    invalidates_person: ClassVar[bool] = True
    # parent type -> attribute on the member row holding the parent's id
    parent_attributes: ClassVar[Mapping[str, str]] = {}
    # attributes copied onto tombstones so their ordering key finds the root
    root_attributes: ClassVar[Sequence[str]] = ()

    def __init__(
        self,
        store: EntityStore,
        requester: DependencyRequester,
        publisher: DownstreamPublisher,
        *,
        grouper: Grouper | None = None,
        schema: str = DEFAULT_SCHEMA,
    ) -> None:
        self._store = store
        self._requester = requester
        self._publisher = publisher
        self._grouper = grouper or SimilarityGrouper(store, self.member_type)
        self._relations = RelationResolver(store)
        self._schema = schema

    @abstractmethod
    def resolve(self, member: MirroredRecord) -> Resolution: ...

    @abstractmethod
    def build(
        self, group: Sequence[Resolution], *, is_trigger: bool
    ) -> Aggregate: ...

    # Trigger A ---------------------------------------------------------------

    def on_direct_change(self, record: MirroredRecord) -> None:
        self._check_family(record)
        group = self._grouper.group_of(record)
        resolutions = self._resolve_group(group)
        if resolutions is None:
            return

        person_id = self.person_of(record)
        if person_id is not None and self.invalidates_person:
            self._invalidate_person(person_id)
        self._publish(resolutions, is_trigger=True)

        if person_id is None or not self.invalidates_person:
            return
        covered = {member.natural_id for member in group}
        others = [
            other
            for other in self._relations.children(
                self.member_type, self.person_attribute, person_id
            )
            if other.natural_id not in covered
        ]
        for other_group in partition_into_groups(others, self._grouper):
            other_resolutions = self._resolve_group(other_group)
            if other_resolutions is not None:
                self._publish(other_resolutions, is_trigger=False)

    # Trigger B ---------------------------------------------------------------

    def on_parent_change(self, parent_type: str, parent_id: str) -> int:
        """Republish every group referencing the parent. Returns the number published."""

        members = self.members_of_parent(parent_type, parent_id)
        published = 0
        for group in partition_into_groups(members, self._grouper):
            resolutions = self._resolve_group(group)
            if resolutions is not None and self._publish(resolutions, is_trigger=False):
                published += 1
        log.debug(
            "%s '%s' changed: republished %s of %s",
            parent_type,
            parent_id,
            published,
            self.member_type,
        )
        return published

    def members_of_parent(self, parent_type: str, parent_id: str) -> Sequence[MirroredRecord]:
        attribute = self.parent_attributes.get(parent_type)
        if attribute is None:
            log.warning("%s does not depend on %s", self.member_type, parent_type)
            return ()
        return self._relations.children(self.member_type, attribute, parent_id)

    # Trigger C ---------------------------------------------------------------

    def on_pre_delete(self, natural_id: str) -> None:
        # The dispatch layer snapshots the row; nothing to enrich yet.
        log.debug("Pre-delete of %s '%s'", self.member_type, natural_id)

    def on_post_delete(self, snapshot: MirroredRecord) -> None:
        self._check_family(snapshot)
        tombstone = Tombstone(
            record_type=self.member_type,
            member_id=snapshot.natural_id,
            person_id=self.person_of(snapshot),
            schema_name=snapshot.schema_name,
            attributes={
                name: value
                for name in self.root_attributes
                if (value := snapshot.get(name)) is not None
            },
        )
        try:
            self._publisher.delete(tombstone)
        except PublishError:
            log.exception("Could not publish deletion of %s", snapshot.natural_id)

        survivors = self._grouper.group_of(snapshot, include_self=False)
        if not survivors:
            return
        resolutions = self._resolve_group(survivors)
        if resolutions is not None:
            self._publish(resolutions, is_trigger=False)

    # Helpers -----------------------------------------------------------------

    def person_of(self, record: MirroredRecord) -> str | None:
        return record.get(self.person_attribute)

    def _check_family(self, record: MirroredRecord) -> None:
        if record.table_name != self.member_type:
            raise WrongRecordFamilyError(self.member_type, record.table_name)

    def _resolve_group(self, group: Iterable[MirroredRecord]) -> list[Resolution] | None:
        resolutions = [self.resolve(member) for member in sorted_by_id(group)]
        missing = merge_missing(resolutions)
        if not missing:
            return resolutions
        log.info(
            "Deferring %s '%s': %s missing relation(s)",
            self.member_type,
            resolutions[0].member.natural_id,
            len(missing),
        )
        for ref in missing:
            self._requester.request_ref(ref)
        return None

    def _publish(self, resolutions: Sequence[Resolution], *, is_trigger: bool) -> bool:
        aggregate = self.build(resolutions, is_trigger=is_trigger)
        try:
            self._publisher.publish(aggregate)
        except PublishError:
            log.exception("Could not publish %s '%s'", aggregate.record_type, aggregate.member_id)
            return False
        return True

    def _invalidate_person(self, person_id: str) -> None:
        try:
            self._publisher.invalidate_person(self.member_type, person_id)
        except PublishError:
            log.exception("Could not invalidate %s for person '%s'", self.member_type, person_id)
