"""In-process adapters: snapshot store, message queue and request cache."""

from __future__ import annotations

from collections import defaultdict, deque
from datetime import UTC, datetime
from threading import Lock
from typing import TYPE_CHECKING

from recordsync.domain.model import DeletionSnapshot

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import timedelta

    from recordsync.domain.model import MirroredRecord, PendingRequestToken


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemorySnapshotStore:
    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._lock = Lock()
        self._snapshots: dict[tuple[str, str], DeletionSnapshot] = {}
        self._clock = clock

    def get(self, table_name: str, natural_id: str) -> MirroredRecord | None:
        with self._lock:
            snapshot = self._snapshots.get((table_name, natural_id))
        return snapshot.record if snapshot is not None else None

    def taken_at(self, table_name: str, natural_id: str) -> datetime | None:
        with self._lock:
            snapshot = self._snapshots.get((table_name, natural_id))
        return snapshot.taken_at if snapshot is not None else None

    def put(self, record: MirroredRecord) -> None:
        snapshot = DeletionSnapshot(record, self._clock())
        with self._lock:
            self._snapshots[record.key] = snapshot

    def evict(self, table_name: str, natural_id: str) -> None:
        with self._lock:
            self._snapshots.pop((table_name, natural_id), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)


class InMemoryMessageQueue:
    """FIFO queues held in memory, one deque per queue name.

    ``sink`` receives every message as it is sent; the CLI uses it to mirror outbound
    traffic to a file.
    """

    def __init__(
        self, *, sink: Callable[[str, Mapping[str, object], str], None] | None = None
    ) -> None:
        self._lock = Lock()
        self._queues: dict[str, deque[tuple[dict[str, object], str]]] = defaultdict(deque)
        self._sink = sink

    def send(self, queue_name: str, body: Mapping[str, object], group_key: str) -> None:
        with self._lock:
            self._queues[queue_name].append((dict(body), group_key))
        if self._sink is not None:
            self._sink(queue_name, body, group_key)

    def receive(self, queue_name: str) -> tuple[dict[str, object], str] | None:
        with self._lock:
            queue = self._queues.get(queue_name)
            if not queue:
                return None
            return queue.popleft()

    def pending(self, queue_name: str) -> int:
        with self._lock:
            return len(self._queues.get(queue_name, ()))

    def messages(self, queue_name: str) -> list[tuple[dict[str, object], str]]:
        with self._lock:
            return list(self._queues.get(queue_name, ()))


class InMemoryRequestCache:
    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._lock = Lock()
        self._expiry: dict[tuple[str, str], datetime] = {}
        self._clock = clock

    def contains(self, entity_type: str, lookup_key: str) -> bool:
        key = (entity_type, lookup_key)
        with self._lock:
            expires_at = self._expiry.get(key)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                del self._expiry[key]
                return False
            return True

    def add(self, token: PendingRequestToken, ttl: timedelta) -> None:
        with self._lock:
            self._expiry[(token.entity_type, token.natural_id)] = token.requested_at + ttl

    def evict(self, entity_type: str, lookup_key: str) -> None:
        with self._lock:
            self._expiry.pop((entity_type, lookup_key), None)
