"""Publish target that writes aggregates to the profile service."""

from __future__ import annotations

from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from recordsync.domain.errors import UnknownRecordTypeError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from recordsync.domain.model import Aggregate, Tombstone

    from .client import ProfileServiceClient

log = getLogger(__name__)

DEFAULT_API_PATHS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "ProgrammeMembership": "programme-membership",
        "CurriculumMembership": "programme-membership",
        "Placement": "placement",
        "Person": "basic-details",
        "Qualification": "qualification",
    }
)

# Removing a person drops the whole profile rather than one section of it.
DEFAULT_INVALIDATION_PATHS: Final[Mapping[str, str]] = MappingProxyType(
    {"Person": "trainee-profile"}
)


class ProfileServiceTarget:
    def __init__(
        self,
        client: ProfileServiceClient,
        *,
        api_paths: Mapping[str, str] = DEFAULT_API_PATHS,
        invalidation_paths: Mapping[str, str] = DEFAULT_INVALIDATION_PATHS,
    ) -> None:
        self._client = client
        self._api_paths = api_paths
        self._invalidation_paths = invalidation_paths

    @property
    def record_types(self) -> frozenset[str]:
        return frozenset(self._api_paths)

    def upsert(self, aggregate: Aggregate) -> None:
        path = self._path(aggregate.record_type)
        self._client.patch(path, aggregate.person_id, aggregate.payload())
        log.debug("Upserted %s '%s'", aggregate.record_type, aggregate.member_id)

    def delete(self, tombstone: Tombstone) -> None:
        if tombstone.person_id is None:
            log.warning(
                "Cannot delete %s '%s' without a person id",
                tombstone.record_type,
                tombstone.member_id,
            )
            return
        path = self._path(tombstone.record_type)
        self._client.delete(path, tombstone.person_id, tombstone.member_id)

    def invalidate_person(self, record_type: str, person_id: str) -> None:
        path = self._invalidation_paths.get(record_type) or self._path(record_type)
        self._client.delete(path, person_id)

    def _path(self, record_type: str) -> str:
        try:
            return self._api_paths[record_type]
        except KeyError:
            raise UnknownRecordTypeError(record_type) from None
