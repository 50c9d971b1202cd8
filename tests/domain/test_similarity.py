from __future__ import annotations

from recordsync.domain.similarity import (
    SimilarityGrouper,
    SimilarityKey,
    SingletonGrouper,
    partition_into_groups,
)
from tests.helpers.records import InMemoryEntityStore, curriculum_membership, make_record


def _ids(records: tuple[object, ...] | list[object]) -> list[str]:
    return [record.natural_id for record in records]  # type: ignore[attr-defined]


def test_key_requires_all_five_fields() -> None:
    complete = curriculum_membership("11", curriculum_id="c1")
    partial = make_record("CurriculumMembership", "12", personId="personA", programmeId="p1")

    key = SimilarityKey.of(complete)

    assert key is not None
    assert key.criteria() == {
        "personId": "personA",
        "programmeId": "programme1",
        "programmeMembershipType": "SUBSTANTIVE",
        "programmeStartDate": "2019-08-01",
        "programmeEndDate": "2022-07-31",
    }
    assert SimilarityKey.of(partial) is None


def test_group_contains_rows_matching_every_field() -> None:
    row_11 = curriculum_membership("11", curriculum_id="c1")
    row_12 = curriculum_membership("12", curriculum_id="c2")
    other_start = curriculum_membership("13", curriculum_id="c1", start_date="2020-08-01")
    other_type = curriculum_membership("14", curriculum_id="c1", membership_type="substantive")
    grouper = SimilarityGrouper(
        InMemoryEntityStore([row_11, row_12, other_start, other_type]), "CurriculumMembership"
    )

    assert _ids(grouper.group_of(row_12)) == ["11", "12"]
    assert _ids(grouper.group_of(other_start)) == ["13"]
    assert _ids(grouper.group_of(other_type)) == ["14"]


def test_group_of_unsaved_record_includes_itself() -> None:
    row_11 = curriculum_membership("11", curriculum_id="c1")
    unsaved = curriculum_membership("12", curriculum_id="c2")
    grouper = SimilarityGrouper(InMemoryEntityStore([row_11]), "CurriculumMembership")

    assert _ids(grouper.group_of(unsaved)) == ["11", "12"]
    assert _ids(grouper.group_of(unsaved, include_self=False)) == ["11"]


def test_record_without_key_is_a_singleton() -> None:
    record = make_record("CurriculumMembership", "11", personId="personA")
    grouper = SimilarityGrouper(InMemoryEntityStore([record]), "CurriculumMembership")

    assert grouper.group_of(record) == (record,)
    assert grouper.group_of(record, include_self=False) == ()


def test_singleton_grouper_never_merges() -> None:
    record = make_record("Placement", "1")

    assert SingletonGrouper().group_of(record) == (record,)


def test_partition_emits_each_group_once() -> None:
    rows = [
        curriculum_membership("11", curriculum_id="c1"),
        curriculum_membership("12", curriculum_id="c2"),
        curriculum_membership("21", curriculum_id="c1", start_date="2023-01-01"),
    ]
    grouper = SimilarityGrouper(InMemoryEntityStore(rows), "CurriculumMembership")

    groups = partition_into_groups(reversed(rows), grouper)

    assert [_ids(group) for group in groups] == [["11", "12"], ["21"]]
