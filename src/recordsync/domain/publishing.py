"""Routing of finished aggregates to downstream targets."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from recordsync.config.errors import ConfigurationError
from recordsync.domain.errors import TransportError, UnknownRecordTypeError
from recordsync.domain.fifo import group_key_of

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from recordsync.domain.model import Aggregate, Tombstone
    from recordsync.domain.ports import MessageQueue, PublishTarget

log = getLogger(__name__)


class DownstreamPublisher:
    """Table of record type name to publish targets, checked when built.

    Targets fail independently: a ``TransportError`` from one is logged and the next
    target still receives the aggregate.
    """

    def __init__(
        self,
        targets: Mapping[str, Sequence[PublishTarget]],
        *,
        required_types: Iterable[str] = (),
    ) -> None:
        missing = sorted(name for name in required_types if not targets.get(name))
        if missing:
            raise ConfigurationError(f"No publish targets registered for: {', '.join(missing)}")
        self._targets = {name: tuple(handlers) for name, handlers in targets.items()}

    def publish(self, aggregate: Aggregate) -> int:
        return self._fan_out(
            aggregate.record_type,
            lambda target: target.upsert(aggregate),
            f"{aggregate.record_type} '{aggregate.member_id}'",
        )

    def delete(self, tombstone: Tombstone) -> int:
        return self._fan_out(
            tombstone.record_type,
            lambda target: target.delete(tombstone),
            f"deletion of {tombstone.record_type} '{tombstone.member_id}'",
        )

    def invalidate_person(self, record_type: str, person_id: str) -> int:
        return self._fan_out(
            record_type,
            lambda target: target.invalidate_person(record_type, person_id),
            f"{record_type} invalidation for person '{person_id}'",
        )

    def _fan_out(
        self, record_type: str, call: Callable[[PublishTarget], None], description: str
    ) -> int:
        targets = self._targets.get(record_type)
        if targets is None:
            raise UnknownRecordTypeError(record_type)
        delivered = 0
        for target in targets:
            try:
                call(target)
            except TransportError:
                log.exception("Publishing %s to %s failed", description, type(target).__name__)
                continue
            delivered += 1
        return delivered


class QueueTarget:
    """Sends ``{payload, groupKey}`` messages to an outbound queue."""

    def __init__(
        self,
        queue: MessageQueue,
        queue_name: str,
        *,
        key_of: Callable[[object], str] = group_key_of,
    ) -> None:
        self._queue = queue
        self._queue_name = queue_name
        self._key_of = key_of

    def upsert(self, aggregate: Aggregate) -> None:
        body = {"type": aggregate.record_type, "operation": "upsert", **aggregate.payload()}
        self._queue.send(self._queue_name, body, self._key_of(aggregate))

    def delete(self, tombstone: Tombstone) -> None:
        body = {"type": tombstone.record_type, "operation": "delete", **tombstone.payload()}
        self._queue.send(self._queue_name, body, self._key_of(tombstone))

    def invalidate_person(self, record_type: str, person_id: str) -> None:
        # Queue consumers receive explicit tombstones; nothing to invalidate.
        return None
