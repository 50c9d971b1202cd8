"""Aggregate assembly shared by the two membership families."""

from __future__ import annotations

from datetime import date
from logging import getLogger
from typing import TYPE_CHECKING

from recordsync.domain.model import ConditionsOfJoiningRef, CurriculumRef, MembershipAggregate

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from recordsync.domain.model import MirroredRecord

    from .resolution import Resolution

log = getLogger(__name__)

COMPLETION_DATE = "programmeCompletionDate"


def parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        log.warning("Ignoring unreadable date %r", value)
        return None


def latest_completion(rows: Iterable[MirroredRecord]) -> date | None:
    """Maximum completion date over ``rows``; rows without one are ignored."""

    dates = [parsed for row in rows if (parsed := parse_date(row.get(COMPLETION_DATE)))]
    return max(dates, default=None)


def curriculum_ref(membership: MirroredRecord, curriculum: MirroredRecord) -> CurriculumRef:
    return CurriculumRef(
        curriculum_id=curriculum.natural_id,
        name=curriculum.get("name"),
        sub_type=curriculum.get("curriculumSubType"),
        specialty_id=curriculum.get("specialtyId"),
        start_date=membership.get("curriculumStartDate"),
        end_date=membership.get("curriculumEndDate"),
    )


def merge_curricula(refs: Iterable[CurriculumRef]) -> tuple[CurriculumRef, ...]:
    return tuple(
        sorted(
            set(refs),
            key=lambda ref: (ref.curriculum_id, ref.start_date or "", ref.end_date or ""),
        )
    )


def conditions_of_joining_ref(record: MirroredRecord | None) -> ConditionsOfJoiningRef | None:
    if record is None:
        return None
    return ConditionsOfJoiningRef(
        programme_membership_uuid=record.get("programmeMembershipUuid") or record.natural_id,
        signed_at=record.get("signedAt"),
        version=record.get("version"),
    )


def membership_aggregate(
    record_type: str,
    group: Sequence[Resolution],
    *,
    person_attribute: str,
    curricula: Iterable[CurriculumRef],
    completion_rows: Iterable[MirroredRecord],
    is_trigger: bool,
    schema: str,
    conditions_of_joining: ConditionsOfJoiningRef | None = None,
    programme_membership_uuid: str | None = None,
) -> MembershipAggregate:
    """One aggregate for a whole similarity group, keyed by its lowest member id."""

    representative = group[0]
    member = representative.member
    programme = representative.get("programme")
    return MembershipAggregate(
        record_type=record_type,
        member_id=member.natural_id,
        person_id=member.get(person_attribute) or "",
        is_trigger=is_trigger,
        schema_name=schema,
        member_ids=tuple(resolution.member.natural_id for resolution in group),
        programme_id=member.get("programmeId"),
        programme_name=programme.get("programmeName") if programme else None,
        programme_number=programme.get("programmeNumber") if programme else None,
        managing_deanery=programme.get("owner") if programme else None,
        membership_type=member.get("programmeMembershipType"),
        start_date=member.get("programmeStartDate"),
        end_date=member.get("programmeEndDate"),
        completion_date=latest_completion(completion_rows),
        curricula=merge_curricula(curricula),
        conditions_of_joining=conditions_of_joining,
        programme_membership_uuid=programme_membership_uuid,
    )
