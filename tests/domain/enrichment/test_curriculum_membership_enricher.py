from __future__ import annotations

from datetime import date

import pytest

from recordsync.domain.enrichment import CurriculumMembershipEnricher
from recordsync.domain.errors import WrongRecordFamilyError
from recordsync.domain.model import MembershipAggregate, MirroredRecord
from tests.helpers.records import Pipeline, build_pipeline, curriculum_membership, make_record

PROGRAMME = make_record(
    "Programme", "programme1", programmeName="Cardiology", programmeNumber="CAR1", owner="London"
)
CURRICULUM_1 = make_record("Curriculum", "curriculum1", name="Cardiology core")
CURRICULUM_2 = make_record("Curriculum", "curriculum2", name="Cardiology higher")
ROW_11 = curriculum_membership("11", curriculum_id="curriculum1", completion_date="2020-01-31")
ROW_12 = curriculum_membership("12", curriculum_id="curriculum2", completion_date="2020-06-30")
ROW_21 = curriculum_membership(
    "21", curriculum_id="curriculum1", start_date="2023-01-01", end_date="2025-07-31"
)


def _enricher(pipeline: Pipeline) -> CurriculumMembershipEnricher:
    return CurriculumMembershipEnricher(pipeline.store, pipeline.requester, pipeline.publisher)


def _pipeline(*rows: MirroredRecord) -> Pipeline:
    return build_pipeline([PROGRAMME, CURRICULUM_1, CURRICULUM_2, *rows])


def _curriculum_ids(aggregate: object) -> set[str]:
    assert isinstance(aggregate, MembershipAggregate)
    return {curriculum.curriculum_id for curriculum in aggregate.curricula}


def test_split_membership_is_merged_into_one_aggregate() -> None:
    pipeline = _pipeline(ROW_11, ROW_12)

    _enricher(pipeline).on_direct_change(ROW_11)

    assert len(pipeline.target.upserts) == 1
    aggregate = pipeline.target.upserts[0]
    assert isinstance(aggregate, MembershipAggregate)
    assert _curriculum_ids(aggregate) == {"curriculum1", "curriculum2"}
    assert aggregate.completion_date == date(2020, 6, 30)
    assert aggregate.is_trigger is True
    assert aggregate.member_ids == ("11", "12")
    assert aggregate.programme_name == "Cardiology"
    assert aggregate.managing_deanery == "London"


def test_direct_trigger_invalidates_person_before_publishing() -> None:
    pipeline = _pipeline(ROW_11)

    _enricher(pipeline).on_direct_change(ROW_11)

    assert pipeline.target.invalidations == [("CurriculumMembership", "personA")]
    assert list(pipeline.target.published) == [("CurriculumMembership", "11")]


def test_each_group_of_the_person_is_published_exactly_once() -> None:
    pipeline = _pipeline(ROW_11, ROW_12, ROW_21)

    _enricher(pipeline).on_direct_change(ROW_12)

    upserts = pipeline.target.upserts
    assert [(aggregate.member_id, aggregate.is_trigger) for aggregate in upserts] == [
        ("11", True),
        ("21", False),
    ]
    assert _curriculum_ids(upserts[1]) == {"curriculum1"}


def test_missing_programme_defers_with_one_request() -> None:
    pipeline = build_pipeline([CURRICULUM_1, ROW_11])

    _enricher(pipeline).on_direct_change(ROW_11)

    assert pipeline.channel.sent == [("Programme", {"id": "programme1"})]
    assert pipeline.target.upserts == []
    assert pipeline.target.invalidations == []


def test_missing_relation_of_a_sibling_blocks_the_whole_group() -> None:
    sibling = curriculum_membership("12", curriculum_id="curriculum9")
    pipeline = _pipeline(ROW_11, sibling)

    _enricher(pipeline).on_direct_change(ROW_11)

    assert pipeline.channel.sent == [("Curriculum", {"id": "curriculum9"})]
    assert pipeline.target.upserts == []


def test_unresolvable_other_group_is_skipped_without_stopping_the_trigger() -> None:
    other = curriculum_membership("21", curriculum_id="curriculum9", start_date="2023-01-01")
    pipeline = _pipeline(ROW_11, other)

    _enricher(pipeline).on_direct_change(ROW_11)

    assert [aggregate.member_id for aggregate in pipeline.target.upserts] == ["11"]
    assert pipeline.channel.sent == [("Curriculum", {"id": "curriculum9"})]


def test_direct_trigger_is_idempotent() -> None:
    pipeline = _pipeline(ROW_11, ROW_12)
    enricher = _enricher(pipeline)

    enricher.on_direct_change(ROW_11)
    enricher.on_direct_change(ROW_11)

    first, second = pipeline.target.upserts
    assert first.payload() == second.payload()


def test_parent_change_republishes_one_aggregate_per_group() -> None:
    pipeline = _pipeline(ROW_11, ROW_12, ROW_21)

    published = _enricher(pipeline).on_parent_change("Programme", "programme1")

    assert published == 2
    assert pipeline.target.invalidations == []
    upserts = pipeline.target.upserts
    assert [(aggregate.member_id, aggregate.is_trigger) for aggregate in upserts] == [
        ("11", False),
        ("21", False),
    ]


def test_parent_change_skips_groups_with_missing_relations() -> None:
    other = curriculum_membership("21", curriculum_id="curriculum9", start_date="2023-01-01")
    pipeline = _pipeline(ROW_11, other)

    published = _enricher(pipeline).on_parent_change("Programme", "programme1")

    assert published == 1
    assert pipeline.channel.sent == [("Curriculum", {"id": "curriculum9"})]


def test_deleting_a_group_member_publishes_tombstone_and_rebuilds_survivor() -> None:
    pipeline = _pipeline(ROW_12)

    _enricher(pipeline).on_post_delete(ROW_11)

    assert [tombstone.member_id for tombstone in pipeline.target.deletes] == ["11"]
    assert len(pipeline.target.upserts) == 1
    survivor = pipeline.target.upserts[0]
    assert survivor.member_id == "12"
    assert survivor.is_trigger is False
    assert _curriculum_ids(survivor) == {"curriculum2"}


def test_deleting_a_singleton_publishes_only_the_tombstone() -> None:
    pipeline = _pipeline(ROW_21)

    _enricher(pipeline).on_post_delete(ROW_11)

    assert [tombstone.member_id for tombstone in pipeline.target.deletes] == ["11"]
    assert pipeline.target.upserts == []


def test_tombstone_carries_root_reference() -> None:
    row = curriculum_membership("11", curriculum_id="curriculum1", programmeMembershipUuid="U")
    pipeline = _pipeline()

    _enricher(pipeline).on_post_delete(row)

    (tombstone,) = pipeline.target.deletes
    assert tombstone.person_id == "personA"
    assert tombstone.attributes == {"programmeMembershipUuid": "U"}


def test_wrong_family_is_a_programming_error() -> None:
    pipeline = _pipeline()

    with pytest.raises(WrongRecordFamilyError):
        _enricher(pipeline).on_direct_change(make_record("Placement", "1"))
