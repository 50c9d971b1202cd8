"""Ports for downstream publication."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from recordsync.domain.model import Aggregate, Tombstone


@runtime_checkable
class PublishTarget(Protocol):
    """A consumer of finished aggregates.

    Implementations raise ``TransportError`` when the hand-off fails.
    """

    def upsert(self, aggregate: Aggregate) -> None: ...

    def delete(self, tombstone: Tombstone) -> None: ...

    def invalidate_person(self, record_type: str, person_id: str) -> None: ...


@runtime_checkable
class MessageQueue(Protocol):
    """Outbound queue accepting a JSON-able body and an ordering key."""

    def send(self, queue_name: str, body: Mapping[str, object], group_key: str) -> None: ...
