"""Ports for dependency requests and their dedup cache."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import timedelta

    from recordsync.domain.model import PendingRequestToken


@runtime_checkable
class RequestChannel(Protocol):
    """Sends "resend entity X" messages upstream.

    Answers arrive later as Lookup-tagged notifications on the change channel.
    Implementations raise ``TransportError`` when a send fails.
    """

    def send(self, entity_type: str, where: Mapping[str, str]) -> None: ...


@runtime_checkable
class RequestCache(Protocol):
    """TTL store of in-flight dependency requests."""

    def contains(self, entity_type: str, lookup_key: str) -> bool: ...

    def add(self, token: PendingRequestToken, ttl: timedelta) -> None: ...

    def evict(self, entity_type: str, lookup_key: str) -> None: ...
