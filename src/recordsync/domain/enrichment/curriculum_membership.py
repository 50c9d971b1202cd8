"""Curriculum membership aggregates: one per similarity group of membership rows."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

from recordsync.domain.model import RecordType

from .base import Enricher
from .membership import curriculum_ref, membership_aggregate
from .resolution import Resolution

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recordsync.domain.model import MembershipAggregate, MirroredRecord


class CurriculumMembershipEnricher(Enricher):
    member_type = RecordType.CURRICULUM_MEMBERSHIP
    parent_attributes = MappingProxyType(
        {RecordType.PROGRAMME: "programmeId", RecordType.CURRICULUM: "curriculumId"}
    )
    root_attributes = ("programmeMembershipUuid",)

    def resolve(self, member: MirroredRecord) -> Resolution:
        resolution = Resolution(member)
        self._relations.reference(
            resolution, "programme", RecordType.PROGRAMME, member.get("programmeId")
        )
        self._relations.reference(
            resolution, "curriculum", RecordType.CURRICULUM, member.get("curriculumId")
        )
        return resolution

    def build(self, group: Sequence[Resolution], *, is_trigger: bool) -> MembershipAggregate:
        curricula = [
            curriculum_ref(resolution.member, curriculum)
            for resolution in group
            if (curriculum := resolution.get("curriculum")) is not None
        ]
        return membership_aggregate(
            self.member_type,
            group,
            person_attribute=self.person_attribute,
            curricula=curricula,
            completion_rows=[resolution.member for resolution in group],
            is_trigger=is_trigger,
            schema=self._schema,
            programme_membership_uuid=group[0].member.get("programmeMembershipUuid"),
        )
