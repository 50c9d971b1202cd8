"""Denormalised aggregates published downstream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import Operation
from .record import DEFAULT_SCHEMA, MirroredRecord

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import date


@dataclass(frozen=True, slots=True, order=True)
class CurriculumRef:
    curriculum_id: str
    name: str | None = None
    sub_type: str | None = None
    specialty_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None

    def as_payload(self) -> dict[str, str | None]:
        return {
            "curriculumTisId": self.curriculum_id,
            "curriculumName": self.name,
            "curriculumSubType": self.sub_type,
            "curriculumSpecialtyId": self.specialty_id,
            "curriculumStartDate": self.start_date,
            "curriculumEndDate": self.end_date,
        }


@dataclass(frozen=True, slots=True)
class ConditionsOfJoiningRef:
    programme_membership_uuid: str
    signed_at: str | None = None
    version: str | None = None

    def as_payload(self) -> dict[str, str | None]:
        return {"signedAt": self.signed_at, "version": self.version}


@dataclass(frozen=True, slots=True, kw_only=True)
class Aggregate:
    """Base shape shared by every published aggregate."""

    record_type: str
    member_id: str
    person_id: str
    is_trigger: bool = False
    schema_name: str = DEFAULT_SCHEMA

    def payload(self) -> dict[str, object]:
        return {
            "tisId": self.member_id,
            "traineeTisId": self.person_id,
            "isTrigger": self.is_trigger,
        }

    def root_attributes(self) -> Mapping[str, str]:
        """Attributes the FIFO resolver needs to find this aggregate's root."""

        return {}

    def to_record(self) -> MirroredRecord:
        attributes = {key: str(value) for key, value in self.root_attributes().items()}
        return MirroredRecord(
            natural_id=self.member_id,
            table_name=self.record_type,
            schema_name=self.schema_name,
            operation=Operation.LOAD,
            attributes=attributes,
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class MembershipAggregate(Aggregate):
    """Joined view of one logical programme/curriculum membership."""

    member_ids: tuple[str, ...] = ()
    programme_id: str | None = None
    programme_name: str | None = None
    programme_number: str | None = None
    managing_deanery: str | None = None
    membership_type: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    completion_date: date | None = None
    curricula: tuple[CurriculumRef, ...] = ()
    conditions_of_joining: ConditionsOfJoiningRef | None = None
    programme_membership_uuid: str | None = None

    def payload(self) -> dict[str, object]:
        payload = Aggregate.payload(self)
        payload.update(
            {
                "memberTisIds": list(self.member_ids),
                "programmeTisId": self.programme_id,
                "programmeName": self.programme_name,
                "programmeNumber": self.programme_number,
                "managingDeanery": self.managing_deanery,
                "programmeMembershipType": self.membership_type,
                "startDate": self.start_date,
                "endDate": self.end_date,
                "programmeCompletionDate": (
                    self.completion_date.isoformat() if self.completion_date else None
                ),
                "curricula": [curriculum.as_payload() for curriculum in self.curricula],
                "conditionsOfJoining": (
                    self.conditions_of_joining.as_payload()
                    if self.conditions_of_joining
                    else None
                ),
            }
        )
        return payload

    def root_attributes(self) -> Mapping[str, str]:
        if self.programme_membership_uuid is None:
            return {}
        return {"programmeMembershipUuid": self.programme_membership_uuid}


@dataclass(frozen=True, slots=True, kw_only=True)
class PlacementAggregate(Aggregate):
    """Joined view of one placement with its post, site, grade and specialties."""

    start_date: str | None = None
    end_date: str | None = None
    placement_type: str | None = None
    whole_time_equivalent: str | None = None
    owner: str | None = None
    employing_body_name: str | None = None
    training_body_name: str | None = None
    site: str | None = None
    site_location: str | None = None
    site_known_as: str | None = None
    other_sites: tuple[Mapping[str, str | None], ...] = ()
    grade_abbreviation: str | None = None
    specialty: str | None = None
    sub_specialty: str | None = None
    other_specialties: tuple[Mapping[str, str | None], ...] = ()
    post_allows_subspecialty: bool = False

    def payload(self) -> dict[str, object]:
        payload = Aggregate.payload(self)
        payload.update(
            {
                "startDate": self.start_date,
                "endDate": self.end_date,
                "placementType": self.placement_type,
                "wholeTimeEquivalent": self.whole_time_equivalent,
                "owner": self.owner,
                "employingBodyName": self.employing_body_name,
                "trainingBodyName": self.training_body_name,
                "site": self.site,
                "siteLocation": self.site_location,
                "siteKnownAs": self.site_known_as,
                "otherSites": [dict(site) for site in self.other_sites],
                "gradeAbbreviation": self.grade_abbreviation,
                "specialty": self.specialty,
                "subSpecialty": self.sub_specialty,
                "otherSpecialties": [dict(item) for item in self.other_specialties],
                "postAllowsSubspecialty": self.post_allows_subspecialty,
            }
        )
        return payload


@dataclass(frozen=True, slots=True, kw_only=True)
class DetailsAggregate(Aggregate):
    """A person-level record passed through unchanged, keyed to its person."""

    details: Mapping[str, str] = field(default_factory=dict["str", "str"])
    person_attribute: str | None = None

    def payload(self) -> dict[str, object]:
        payload: dict[str, object] = dict(self.details)
        payload.update(Aggregate.payload(self))
        return payload

    def root_attributes(self) -> Mapping[str, str]:
        if self.person_attribute is None:
            return {}
        return {self.person_attribute: self.person_id}


@dataclass(frozen=True, slots=True, kw_only=True)
class Tombstone:
    """Instruction for consumers to drop a published aggregate."""

    record_type: str
    member_id: str
    person_id: str | None
    schema_name: str = DEFAULT_SCHEMA
    attributes: Mapping[str, str] = field(default_factory=dict["str", "str"])

    def payload(self) -> dict[str, object]:
        return {"tisId": self.member_id, "traineeTisId": self.person_id}

    def to_record(self) -> MirroredRecord:
        return MirroredRecord(
            natural_id=self.member_id,
            table_name=self.record_type,
            schema_name=self.schema_name,
            operation=Operation.DELETE,
            attributes=dict(self.attributes),
        )
