"""Person-level records passed through to downstream targets without enrichment.

Only people who qualify for a trainee profile are published: their ``role`` list must
name the trainee role and none of the excluded ones. Records of other people are kept
in the store and go no further.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from recordsync.domain.dispatch import RecordListener
from recordsync.domain.model import DetailsAggregate, RecordType, Tombstone

if TYPE_CHECKING:
    from recordsync.domain.model import MirroredRecord
    from recordsync.domain.ports import EntityStore
    from recordsync.domain.publishing import DownstreamPublisher

log = getLogger(__name__)

PROFILE_ROLE: Final = "DR in Training"
EXCLUDED_ROLES: Final = frozenset({"placeholder", "dummy record"})


def has_profile_role(person: MirroredRecord) -> bool:
    roles = {role.strip().lower() for role in (person.get("role") or "").split(",")}
    return PROFILE_ROLE.lower() in roles and not roles & EXCLUDED_ROLES


class PersonDetailsListener(RecordListener):
    """Publishes a Person row, or a row owned by a person, as it was mirrored.

    ``person_attribute`` names the owning person's id; leave it unset for the Person
    table itself.
    """

    def __init__(
        self,
        record_type: str,
        store: EntityStore,
        publisher: DownstreamPublisher,
        *,
        person_attribute: str | None = None,
    ) -> None:
        self._record_type = record_type
        self._store = store
        self._publisher = publisher
        self._person_attribute = person_attribute

    def on_change(self, record: MirroredRecord) -> None:
        person_id = self._profile_owner(record)
        if person_id is None:
            return
        self._publisher.publish(
            DetailsAggregate(
                record_type=self._record_type,
                member_id=record.natural_id,
                person_id=person_id,
                schema_name=record.schema_name,
                details=dict(record.attributes),
                person_attribute=self._person_attribute,
            )
        )

    def on_post_delete(self, snapshot: MirroredRecord) -> None:
        person_id = self._profile_owner(snapshot)
        if person_id is None:
            return
        if self._person_attribute is None:
            self._publisher.invalidate_person(self._record_type, person_id)
            return
        self._publisher.delete(
            Tombstone(
                record_type=self._record_type,
                member_id=snapshot.natural_id,
                person_id=person_id,
                schema_name=snapshot.schema_name,
                attributes={self._person_attribute: person_id},
            )
        )

    def _profile_owner(self, record: MirroredRecord) -> str | None:
        if self._person_attribute is None:
            person: MirroredRecord | None = record
            person_id: str | None = record.natural_id
        else:
            person_id = record.get(self._person_attribute)
            if person_id is None:
                log.warning(
                    "%s '%s' has no %s",
                    record.table_name,
                    record.natural_id,
                    self._person_attribute,
                )
                return None
            person = self._store.find_by_id(RecordType.PERSON, person_id)
        if person is None or not has_profile_role(person):
            log.info(
                "Person '%s' has no trainee profile, %s '%s' is not published",
                person_id,
                record.table_name,
                record.natural_id,
            )
            return None
        return person_id
