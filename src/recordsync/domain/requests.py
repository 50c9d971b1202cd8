"""Missing-dependency requests, deduplicated through a TTL cache."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from recordsync.domain.errors import TransportError
from recordsync.domain.model import PendingRequestToken

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from datetime import timedelta

    from recordsync.domain.model import DependencyRef, MirroredRecord
    from recordsync.domain.ports import RequestCache, RequestChannel

log = getLogger(__name__)

# Types that are also requested by a where-clause on one of their attributes.
DEFAULT_LOOKUP_ATTRIBUTES: Final[Mapping[str, Sequence[str]]] = MappingProxyType(
    {"CurriculumMembership": ("programmeMembershipUuid",)}
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DependencyRequester:
    """Asks the upstream system to resend missing entities.

    A request is sent at most once per ``(entity_type, key)`` until the cached token
    expires or the entity arrives. Send failures are logged and never raised.
    """

    def __init__(
        self,
        channel: RequestChannel,
        cache: RequestCache,
        *,
        ttl: timedelta,
        clock: Callable[[], datetime] | None = None,
        lookup_attributes: Mapping[str, Sequence[str]] = DEFAULT_LOOKUP_ATTRIBUTES,
    ) -> None:
        self._channel = channel
        self._cache = cache
        self._ttl = ttl
        self._clock = clock or _utcnow
        self._lookup_attributes = lookup_attributes

    def request(
        self, entity_type: str, lookup_key: str, where: Mapping[str, str] | None = None
    ) -> bool:
        """Send a request unless one is already in flight. Returns whether one was sent."""

        if self._is_pending(entity_type, lookup_key):
            log.debug("Request for %s '%s' already in flight", entity_type, lookup_key)
            return False
        where_clause = dict(where) if where else {"id": lookup_key}
        try:
            self._channel.send(entity_type, where_clause)
        except TransportError:
            log.exception("Could not request %s with %s", entity_type, where_clause)
            return False
        log.info("Requested %s with %s", entity_type, where_clause)
        token = PendingRequestToken(entity_type, lookup_key, self._clock())
        try:
            self._cache.add(token, self._ttl)
        except TransportError:
            log.exception("Could not cache request for %s '%s'", entity_type, lookup_key)
        return True

    def request_ref(self, ref: DependencyRef) -> bool:
        return self.request(ref.entity_type, ref.lookup_key, ref.where_clause())

    def confirm_arrival(self, record: MirroredRecord) -> None:
        """Evict every cached request the arrival of ``record`` answers."""

        keys = [record.natural_id]
        for attribute in self._lookup_attributes.get(record.table_name, ()):
            value = record.get(attribute)
            if value is not None:
                keys.append(value)
        for key in keys:
            try:
                self._cache.evict(record.table_name, key)
            except TransportError:
                log.exception("Could not evict request for %s '%s'", record.table_name, key)

    def _is_pending(self, entity_type: str, lookup_key: str) -> bool:
        try:
            return self._cache.contains(entity_type, lookup_key)
        except TransportError:
            log.exception("Request cache unavailable for %s '%s'", entity_type, lookup_key)
            return False
