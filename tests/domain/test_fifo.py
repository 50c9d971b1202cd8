from __future__ import annotations

import logging
from datetime import date

import pytest

from recordsync.domain.fifo import FifoGroupResolver, RootReference, group_key_of
from recordsync.domain.model import (
    MembershipAggregate,
    Operation,
    PlacementAggregate,
    Tombstone,
)
from tests.helpers.records import make_record


def test_conditions_of_joining_shares_key_with_its_programme_membership() -> None:
    conditions = make_record("ConditionsOfJoining", "coj-1", programmeMembershipUuid="U")
    membership = make_record("ProgrammeMembership", "U")

    assert group_key_of(conditions) == "tcs_ProgrammeMembership_U"
    assert group_key_of(conditions) == group_key_of(membership)


@pytest.mark.parametrize(
    ("table_name", "attributes", "expected"),
    [
        ("CurriculumMembership", {"programmeMembershipUuid": "U"}, "tcs_ProgrammeMembership_U"),
        ("PlacementSite", {"placementId": "42"}, "tcs_Placement_42"),
        ("PlacementSpecialty", {"placementId": "42"}, "tcs_Placement_42"),
        ("PostSpecialty", {"postId": "7"}, "tcs_Post_7"),
        ("Qualification", {"personId": "99"}, "tcs_Person_99"),
        ("Placement", {"traineeId": "99"}, "tcs_Placement_1"),
        ("Programme", {}, "tcs_Programme_1"),
    ],
)
def test_records_map_to_their_root(
    table_name: str, attributes: dict[str, str], expected: str
) -> None:
    assert group_key_of(make_record(table_name, "1", **attributes)) == expected


def test_dependent_without_foreign_key_falls_back_to_own_id(
    caplog: pytest.LogCaptureFixture,
) -> None:
    orphan = make_record("PlacementSite", "5")

    with caplog.at_level(logging.ERROR):
        key = group_key_of(orphan)

    assert key == "tcs_PlacementSite_5"
    assert "no root reference" in caplog.text


def test_schema_is_part_of_the_key() -> None:
    record = make_record("Programme", "1").with_operation(Operation.LOOKUP)
    other_schema = type(record)(
        natural_id="1", table_name="Programme", schema_name="reference"
    )

    assert group_key_of(record) == "tcs_Programme_1"
    assert group_key_of(other_schema) == "reference_Programme_1"


def test_aggregates_and_tombstones_resolve_through_their_records() -> None:
    membership = MembershipAggregate(
        record_type="CurriculumMembership",
        member_id="11",
        person_id="personA",
        completion_date=date(2020, 6, 30),
        programme_membership_uuid="U",
    )
    placement = PlacementAggregate(record_type="Placement", member_id="42", person_id="t1")
    tombstone = Tombstone(
        record_type="CurriculumMembership",
        member_id="11",
        person_id="personA",
        attributes={"programmeMembershipUuid": "U"},
    )

    assert group_key_of(membership) == "tcs_ProgrammeMembership_U"
    assert group_key_of(placement) == "tcs_Placement_42"
    assert group_key_of(tombstone) == "tcs_ProgrammeMembership_U"


class _Unreadable:
    @property
    def id(self) -> str:
        raise ValueError("corrupt")


class _WithId:
    id = 17


def test_unrecognised_shapes_never_raise() -> None:
    assert group_key_of(object()) == "tcs_object_"
    assert group_key_of(_Unreadable()) == "tcs__Unreadable_"
    assert group_key_of(_WithId()) == "tcs__WithId_17"


def test_custom_references() -> None:
    resolver = FifoGroupResolver({"Note": RootReference("Person", "ownerId")})

    assert resolver.group_key_of(make_record("Note", "n1", ownerId="p1")) == "tcs_Person_p1"
    assert resolver.group_key_of(make_record("PlacementSite", "5", placementId="1")) == (
        "tcs_PlacementSite_5"
    )
