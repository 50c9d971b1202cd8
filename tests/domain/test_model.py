from __future__ import annotations

from datetime import date

import pytest

from recordsync.domain.model import (
    ConditionsOfJoiningRef,
    CurriculumRef,
    MembershipAggregate,
    MirroredRecord,
    Operation,
    record_message,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("Load", Operation.LOAD),
        ("INSERT", Operation.INSERT),
        (" update ", Operation.UPDATE),
        ("delete", Operation.DELETE),
        ("LookUp", Operation.LOOKUP),
    ],
)
def test_operation_parse_is_case_insensitive(value: str, expected: Operation) -> None:
    assert Operation.parse(value) is expected


def test_operation_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown operation"):
        Operation.parse("merge")


def test_blank_attributes_read_as_missing() -> None:
    record = MirroredRecord(
        natural_id="1", table_name="Programme", attributes={"name": " ", "owner": "London"}
    )

    assert record.get("name") is None
    assert record.get("owner") == "London"
    assert record.get("absent") is None


def test_record_message_round_trips_metadata() -> None:
    record = MirroredRecord(
        natural_id="U",
        table_name="ProgrammeMembership",
        operation=Operation.LOOKUP,
        attributes={"personId": "p1"},
    )

    assert record_message(record) == {
        "tisId": "U",
        "data": {"personId": "p1"},
        "metadata": {
            "operation": "lookup",
            "schema-name": "tcs",
            "table-name": "ProgrammeMembership",
        },
    }


def test_membership_payload() -> None:
    aggregate = MembershipAggregate(
        record_type="ProgrammeMembership",
        member_id="U",
        person_id="p1",
        is_trigger=True,
        member_ids=("U",),
        completion_date=date(2020, 6, 30),
        curricula=(CurriculumRef("c1", name="Core"),),
        conditions_of_joining=ConditionsOfJoiningRef("U", signed_at="2020-01-01", version="GG9"),
    )

    payload = aggregate.payload()

    assert payload["tisId"] == "U"
    assert payload["isTrigger"] is True
    assert payload["programmeCompletionDate"] == "2020-06-30"
    assert payload["curricula"] == [
        {
            "curriculumTisId": "c1",
            "curriculumName": "Core",
            "curriculumSubType": None,
            "curriculumSpecialtyId": None,
            "curriculumStartDate": None,
            "curriculumEndDate": None,
        }
    ]
    assert payload["conditionsOfJoining"] == {"signedAt": "2020-01-01", "version": "GG9"}
