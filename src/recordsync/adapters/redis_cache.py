"""Request dedup cache shared between workers through Redis."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from redis import Redis
from redis.exceptions import RedisError

from recordsync.domain.errors import TransportError
from recordsync.domain.model import request_cache_key

if TYPE_CHECKING:
    from datetime import timedelta

    from recordsync.domain.model import PendingRequestToken

log = getLogger(__name__)


class RedisRequestCache:
    """Stores each pending request as ``SET <prefix><type>:<key> <requestedAt> EX <ttl>``."""

    def __init__(self, client: Redis, *, key_prefix: str = "") -> None:
        self._client = client
        self._key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "") -> RedisRequestCache:
        return cls(Redis.from_url(url), key_prefix=key_prefix)

    def _key(self, entity_type: str, lookup_key: str) -> str:
        return self._key_prefix + request_cache_key(entity_type, lookup_key)

    def contains(self, entity_type: str, lookup_key: str) -> bool:
        try:
            return bool(self._client.exists(self._key(entity_type, lookup_key)))
        except RedisError as exc:
            raise TransportError(f"Redis lookup failed: {exc}") from exc

    def add(self, token: PendingRequestToken, ttl: timedelta) -> None:
        seconds = max(1, int(ttl.total_seconds()))
        try:
            self._client.set(
                self._key(token.entity_type, token.natural_id),
                token.requested_at.isoformat(),
                ex=seconds,
            )
        except RedisError as exc:
            raise TransportError(f"Redis write failed: {exc}") from exc

    def evict(self, entity_type: str, lookup_key: str) -> None:
        try:
            removed = self._client.delete(self._key(entity_type, lookup_key))
        except RedisError as exc:
            raise TransportError(f"Redis delete failed: {exc}") from exc
        if removed:
            log.debug("Evicted pending request for %s '%s'", entity_type, lookup_key)
