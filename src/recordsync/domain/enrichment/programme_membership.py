"""Programme membership aggregates, joined with their curriculum memberships.

A programme membership row is keyed by its uuid. Its curricula come from the curriculum
membership rows carrying that uuid; at least one must exist before anything is published,
and when none does they are requested by ``programmeMembershipUuid``.
"""

from __future__ import annotations

from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING

from recordsync.domain.model import RecordType

from .base import Enricher
from .membership import conditions_of_joining_ref, curriculum_ref, membership_aggregate
from .resolution import Resolution

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recordsync.domain.model import MembershipAggregate, MirroredRecord

log = getLogger(__name__)

MEMBERSHIP_UUID = "programmeMembershipUuid"


class ProgrammeMembershipEnricher(Enricher):
    member_type = RecordType.PROGRAMME_MEMBERSHIP
    parent_attributes = MappingProxyType({RecordType.PROGRAMME: "programmeId"})

    def resolve(self, member: MirroredRecord) -> Resolution:
        resolution = Resolution(member)
        self._relations.reference(
            resolution, "programme", RecordType.PROGRAMME, member.get("programmeId")
        )
        memberships = self._relations.require_children(
            resolution, RecordType.CURRICULUM_MEMBERSHIP, MEMBERSHIP_UUID, member.natural_id
        )
        self._relations.links(
            resolution, "curricula", memberships, RecordType.CURRICULUM, "curriculumId"
        )
        self._relations.reference(
            resolution,
            "conditionsOfJoining",
            RecordType.CONDITIONS_OF_JOINING,
            member.natural_id,
            required=False,
        )
        return resolution

    def build(self, group: Sequence[Resolution], *, is_trigger: bool) -> MembershipAggregate:
        links = [link for resolution in group for link in resolution.linked("curricula")]
        representative = group[0]
        return membership_aggregate(
            self.member_type,
            group,
            person_attribute=self.person_attribute,
            curricula=[curriculum_ref(link.via, link.target) for link in links],
            completion_rows=[
                *(resolution.member for resolution in group),
                *(link.via for link in links),
            ],
            is_trigger=is_trigger,
            schema=self._schema,
            conditions_of_joining=conditions_of_joining_ref(
                representative.get("conditionsOfJoining")
            ),
            programme_membership_uuid=representative.member.natural_id,
        )

    def members_of_parent(self, parent_type: str, parent_id: str) -> Sequence[MirroredRecord]:
        if parent_type != RecordType.CURRICULUM:
            return super().members_of_parent(parent_type, parent_id)
        memberships = self._relations.children(
            RecordType.CURRICULUM_MEMBERSHIP, "curriculumId", parent_id
        )
        uuids = dict.fromkeys(
            uuid for membership in memberships if (uuid := membership.get(MEMBERSHIP_UUID))
        )
        members: list[MirroredRecord] = []
        for uuid in uuids:
            member = self._store.find_by_id(self.member_type, uuid)
            if member is None:
                log.debug(
                    "Curriculum '%s' references unknown %s '%s'",
                    parent_id,
                    self.member_type,
                    uuid,
                )
                continue
            members.append(member)
        return members
