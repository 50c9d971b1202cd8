"""Placement aggregates: a placement joined with post, trusts, sites, grade and specialties."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

from recordsync.domain.model import DEFAULT_SCHEMA, PlacementAggregate, RecordType
from recordsync.domain.similarity import SingletonGrouper

from .base import Enricher
from .resolution import Resolution

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from recordsync.domain.model import MirroredRecord
    from recordsync.domain.ports import EntityStore
    from recordsync.domain.publishing import DownstreamPublisher
    from recordsync.domain.requests import DependencyRequester

PRIMARY = "PRIMARY"
SUB_SPECIALTY = "SUB_SPECIALTY"
OTHER = "OTHER"


def _site_details(site: MirroredRecord) -> dict[str, str | None]:
    return {
        "site": site.get("siteName"),
        "siteLocation": site.get("address"),
        "siteKnownAs": site.get("siteKnownAs"),
    }


class PlacementEnricher(Enricher):
    member_type = RecordType.PLACEMENT
    person_attribute = "traineeId"
    invalidates_person = False
    parent_attributes = MappingProxyType(
        {
            RecordType.POST: "postId",
            RecordType.SITE: "siteId",
            RecordType.GRADE: "gradeId",
        }
    )

    def __init__(
        self,
        store: EntityStore,
        requester: DependencyRequester,
        publisher: DownstreamPublisher,
        *,
        schema: str = DEFAULT_SCHEMA,
    ) -> None:
        super().__init__(store, requester, publisher, grouper=SingletonGrouper(), schema=schema)

    def resolve(self, member: MirroredRecord) -> Resolution:
        resolution = Resolution(member)
        relations = self._relations
        post = relations.reference(resolution, "post", RecordType.POST, member.get("postId"))
        if post is not None:
            relations.reference(
                resolution, "employingBody", RecordType.TRUST, post.get("employingBodyId")
            )
            relations.reference(
                resolution, "trainingBody", RecordType.TRUST, post.get("trainingBodyId")
            )
        relations.reference(resolution, "site", RecordType.SITE, member.get("siteId"))
        relations.reference(resolution, "grade", RecordType.GRADE, member.get("gradeId"))
        relations.links(
            resolution,
            "otherSites",
            relations.children(RecordType.PLACEMENT_SITE, "placementId", member.natural_id),
            RecordType.SITE,
            "siteId",
            accept=lambda row: row.get("placementSiteType") == OTHER,
        )
        relations.links(
            resolution,
            "specialties",
            relations.children(RecordType.PLACEMENT_SPECIALTY, "placementId", member.natural_id),
            RecordType.SPECIALTY,
            "specialtyId",
        )
        return resolution

    def build(self, group: Sequence[Resolution], *, is_trigger: bool) -> PlacementAggregate:
        resolution = group[0]
        member = resolution.member
        post = resolution.get("post")
        employing_body = resolution.get("employingBody")
        training_body = resolution.get("trainingBody")
        site = resolution.get("site")
        grade = resolution.get("grade")

        specialty = sub_specialty = None
        other_specialties: list[dict[str, str | None]] = []
        for link in resolution.linked("specialties"):
            kind = link.via.get("placementSpecialtyType")
            name = link.target.get("name")
            if kind == PRIMARY:
                specialty = name
            elif kind == SUB_SPECIALTY:
                sub_specialty = name
            elif kind == OTHER:
                other_specialties.append({"name": name, "specialtyId": link.target.natural_id})

        site_details = _site_details(site) if site else {}
        return PlacementAggregate(
            record_type=self.member_type,
            member_id=member.natural_id,
            person_id=self.person_of(member) or "",
            is_trigger=is_trigger,
            schema_name=self._schema,
            start_date=member.get("dateFrom"),
            end_date=member.get("dateTo"),
            placement_type=member.get("placementType"),
            whole_time_equivalent=member.get("wholeTimeEquivalent"),
            owner=post.get("owner") if post else None,
            employing_body_name=employing_body.get("trustKnownAs") if employing_body else None,
            training_body_name=training_body.get("trustKnownAs") if training_body else None,
            site=site_details.get("site"),
            site_location=site_details.get("siteLocation"),
            site_known_as=site_details.get("siteKnownAs"),
            other_sites=tuple(
                _site_details(link.target) for link in resolution.linked("otherSites")
            ),
            grade_abbreviation=grade.get("abbreviation") if grade else None,
            specialty=specialty,
            sub_specialty=sub_specialty,
            other_specialties=tuple(
                sorted(other_specialties, key=lambda item: item["specialtyId"] or "")
            ),
            post_allows_subspecialty=post is not None and self._allows_subspecialty(post),
        )

    def members_of_parent(self, parent_type: str, parent_id: str) -> Sequence[MirroredRecord]:
        if parent_type == RecordType.SPECIALTY:
            return self._placements_via(RecordType.PLACEMENT_SPECIALTY, "specialtyId", parent_id)
        if parent_type == RecordType.TRUST:
            posts = {
                post.natural_id: post
                for attribute in ("employingBodyId", "trainingBodyId")
                for post in self._relations.children(RecordType.POST, attribute, parent_id)
            }
            return self._collect(
                placement
                for post_id in sorted(posts)
                for placement in self._relations.children(self.member_type, "postId", post_id)
            )
        members = super().members_of_parent(parent_type, parent_id)
        if parent_type == RecordType.SITE:
            other = self._placements_via(RecordType.PLACEMENT_SITE, "siteId", parent_id)
            return self._collect([*members, *other])
        return members

    def _placements_via(
        self, link_type: str, attribute: str, parent_id: str
    ) -> list[MirroredRecord]:
        placement_ids = dict.fromkeys(
            placement_id
            for row in self._relations.children(link_type, attribute, parent_id)
            if (placement_id := row.get("placementId"))
        )
        return self._collect(
            placement
            for placement_id in placement_ids
            if (placement := self._store.find_by_id(self.member_type, placement_id))
        )

    @staticmethod
    def _collect(placements: Iterable[MirroredRecord]) -> list[MirroredRecord]:
        return list({placement.natural_id: placement for placement in placements}.values())

    def _allows_subspecialty(self, post: MirroredRecord) -> bool:
        return any(
            row.get("postSpecialtyType") == SUB_SPECIALTY
            for row in self._relations.children(
                RecordType.POST_SPECIALTY, "postId", post.natural_id
            )
        )
