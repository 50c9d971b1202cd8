"""Change dispatch: routes store notifications to listeners.

The dispatcher owns the snapshot-before-delete lifecycle. On a Delete it first takes a
snapshot (read-through: an existing snapshot wins, otherwise the stored row), then deletes
the row, hands the snapshot to the post-delete listeners and finally evicts it.

Lookup-tagged notifications answer earlier dependency requests. When dependents are
waiting for the record it is forwarded, still tagged Lookup, to its family queue;
otherwise it is treated like any other change.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime
from logging import getLogger
from threading import Lock
from typing import TYPE_CHECKING

from recordsync.domain.errors import TransportError, WrongRecordFamilyError
from recordsync.domain.fifo import group_key_of
from recordsync.domain.model import Operation, record_message

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import timedelta

    from recordsync.domain.enrichment import Enricher
    from recordsync.domain.model import MirroredRecord
    from recordsync.domain.ports import EntityStore, MessageQueue, SnapshotStore
    from recordsync.domain.requests import DependencyRequester

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RecordListener:
    """Base listener; every hook is a no-op unless overridden."""

    def on_change(self, record: MirroredRecord) -> None:
        return None

    def on_pre_delete(self, record: MirroredRecord) -> None:
        return None

    def on_post_delete(self, snapshot: MirroredRecord) -> None:
        return None


class DirectChangeListener(RecordListener):
    """Feeds a family's own member rows to its orchestrator."""

    def __init__(self, enricher: Enricher) -> None:
        self._enricher = enricher

    def on_change(self, record: MirroredRecord) -> None:
        self._enricher.on_direct_change(record)

    def on_pre_delete(self, record: MirroredRecord) -> None:
        self._enricher.on_pre_delete(record.natural_id)

    def on_post_delete(self, snapshot: MirroredRecord) -> None:
        self._enricher.on_post_delete(snapshot)


class ParentChangeListener(RecordListener):
    """Republishes a family's aggregates when a record they denormalise changes.

    ``via_attribute`` names the attribute holding the parent's id when the changed
    record is not the parent itself (e.g. a post specialty changing its post).
    """

    def __init__(
        self, enricher: Enricher, parent_type: str, *, via_attribute: str | None = None
    ) -> None:
        self._enricher = enricher
        self._parent_type = parent_type
        self._via_attribute = via_attribute

    def on_change(self, record: MirroredRecord) -> None:
        parent_id = record.get(self._via_attribute) if self._via_attribute else record.natural_id
        if parent_id is None:
            log.warning(
                "%s '%s' has no %s", record.table_name, record.natural_id, self._via_attribute
            )
            return
        self._enricher.on_parent_change(self._parent_type, parent_id)

    def on_post_delete(self, snapshot: MirroredRecord) -> None:
        # Losing a link row changes the parent's view; losing the parent itself does not.
        if self._via_attribute:
            self.on_change(snapshot)


class WaitingRegistry:
    """Roots that dependents are waiting on, keyed by ``(root_type, root_id)``.

    With a ``ttl`` an entry is dropped once it is older than the request that created
    it; a later change of the dependent registers and requests the root again.
    """

    def __init__(
        self,
        *,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._lock = Lock()
        self._ttl = ttl
        self._clock = clock or _utcnow
        self._waiting: dict[tuple[str, str], set[str]] = {}
        self._registered_at: dict[tuple[str, str], datetime] = {}

    def register(self, root_type: str, root_id: str, dependent: str) -> None:
        now = self._clock()
        key = (root_type, root_id)
        with self._lock:
            self._prune(now)
            self._waiting.setdefault(key, set()).add(dependent)
            self._registered_at[key] = now

    def pop(self, root_type: str, root_id: str) -> set[str]:
        key = (root_type, root_id)
        with self._lock:
            self._registered_at.pop(key, None)
            return self._waiting.pop(key, set())

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            self._prune(now)
            return len(self._waiting)

    def _prune(self, now: datetime) -> None:
        if self._ttl is None:
            return
        expired = [key for key, at in self._registered_at.items() if now - at >= self._ttl]
        for key in expired:
            del self._registered_at[key]
            dependents = self._waiting.pop(key)
            log.debug("Dropped %s dependent(s) still waiting on %s '%s'", len(dependents), *key)


class DependentForwarder(RecordListener):
    """Sends a dependent's root, tagged Lookup, to the root family's queue.

    A missing root is requested and the dependent waits for its arrival. After a
    dependent is deleted only a root that is already stored is forwarded.
    """

    def __init__(
        self,
        *,
        root_type: str,
        attribute: str,
        store: EntityStore,
        requester: DependencyRequester,
        queue: MessageQueue,
        queue_name: str,
        waiting: WaitingRegistry,
        key_of: Callable[[object], str] = group_key_of,
    ) -> None:
        self._root_type = root_type
        self._attribute = attribute
        self._store = store
        self._requester = requester
        self._queue = queue
        self._queue_name = queue_name
        self._waiting = waiting
        self._key_of = key_of

    def on_change(self, record: MirroredRecord) -> None:
        self._forward(record, request_if_missing=True)

    def on_post_delete(self, snapshot: MirroredRecord) -> None:
        self._forward(snapshot, request_if_missing=False)

    def _forward(self, record: MirroredRecord, *, request_if_missing: bool) -> None:
        root_id = record.get(self._attribute)
        if root_id is None:
            log.warning(
                "%s '%s' has no %s, cannot find its %s",
                record.table_name,
                record.natural_id,
                self._attribute,
                self._root_type,
            )
            return
        root = self._store.find_by_id(self._root_type, root_id)
        if root is None:
            if not request_if_missing:
                log.debug("No stored %s '%s' to forward", self._root_type, root_id)
                return
            dependent = f"{record.table_name}:{record.natural_id}"
            self._waiting.register(self._root_type, root_id, dependent)
            self._requester.request(self._root_type, root_id)
            return
        forwarded = root.with_operation(Operation.LOOKUP)
        self._queue.send(self._queue_name, record_message(forwarded), self._key_of(forwarded))


class ChangeDispatcher:
    """Routes each notification by operation to the listeners of its table."""

    def __init__(
        self,
        store: EntityStore,
        snapshots: SnapshotStore,
        requester: DependencyRequester,
        *,
        queue: MessageQueue,
        family_queues: Mapping[str, str],
        waiting: WaitingRegistry | None = None,
    ) -> None:
        self._store = store
        self._snapshots = snapshots
        self._requester = requester
        self._queue = queue
        self._family_queues = family_queues
        self._waiting = waiting if waiting is not None else WaitingRegistry()
        self._listeners: dict[str, list[RecordListener]] = defaultdict(list)

    @property
    def waiting(self) -> WaitingRegistry:
        return self._waiting

    def register(self, table_name: str, listener: RecordListener) -> None:
        self._listeners[table_name].append(listener)

    def listeners_for(self, table_name: str) -> tuple[RecordListener, ...]:
        return tuple(self._listeners.get(table_name, ()))

    def handle(self, record: MirroredRecord) -> None:
        match record.operation:
            case Operation.DELETE:
                self._handle_delete(record)
            case Operation.LOOKUP:
                self._handle_lookup(record)
            case _:
                self._store.save(record)
                self._requester.confirm_arrival(record)
                self._waiting.pop(record.table_name, record.natural_id)
                self._notify(record, lambda listener: listener.on_change(record))

    def _handle_lookup(self, record: MirroredRecord) -> None:
        self._requester.confirm_arrival(record)
        if self._store.find_by_id(record.table_name, record.natural_id) is None:
            self._store.save(record)
        waiting = self._waiting.pop(record.table_name, record.natural_id)
        queue_name = self._family_queues.get(record.table_name)
        if waiting and queue_name is not None:
            log.debug(
                "Forwarding %s '%s' to %s for %s waiting dependent(s)",
                record.table_name,
                record.natural_id,
                queue_name,
                len(waiting),
            )
            try:
                self._queue.send(queue_name, record_message(record), group_key_of(record))
            except TransportError:
                log.exception("Could not forward %s '%s'", record.table_name, record.natural_id)
            return
        self._notify(record, lambda listener: listener.on_change(record))

    def _handle_delete(self, record: MirroredRecord) -> None:
        snapshot = self._take_snapshot(record)
        try:
            self._notify(record, lambda listener: listener.on_pre_delete(snapshot))
            self._store.delete_by_id(record.table_name, record.natural_id)
            self._requester.confirm_arrival(snapshot)
            self._waiting.pop(record.table_name, record.natural_id)
            self._notify(record, lambda listener: listener.on_post_delete(snapshot))
        finally:
            self._snapshots.evict(record.table_name, record.natural_id)

    def _take_snapshot(self, record: MirroredRecord) -> MirroredRecord:
        cached = self._snapshots.get(record.table_name, record.natural_id)
        if cached is not None:
            return cached
        stored = self._store.find_by_id(record.table_name, record.natural_id)
        snapshot = stored.with_operation(Operation.DELETE) if stored else record
        if stored is None:
            log.debug("No stored %s '%s' to snapshot", record.table_name, record.natural_id)
        self._snapshots.put(snapshot)
        return snapshot

    def _notify(self, record: MirroredRecord, call: Callable[[RecordListener], None]) -> None:
        for listener in self._listeners.get(record.table_name, ()):
            try:
                call(listener)
            except WrongRecordFamilyError:
                raise
            except Exception:
                log.exception(
                    "%s failed for %s '%s'",
                    type(listener).__name__,
                    record.table_name,
                    record.natural_id,
                )
