"""Application composition root: wires adapters, orchestrators and listeners."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from recordsync.adapters.jsonl import JsonLinesQueueSink, JsonLinesRequestChannel
from recordsync.adapters.memory import InMemoryMessageQueue, InMemorySnapshotStore
from recordsync.adapters.profile import ProfileServiceClient, ProfileServiceTarget
from recordsync.adapters.redis_cache import RedisRequestCache
from recordsync.adapters.schema import ChangeNotificationPayload
from recordsync.adapters.sqlalchemy import (
    SqlAlchemyEntityStore,
    SqlAlchemyRequestCache,
    is_started,
    session_factory,
    startup,
)
from recordsync.config import (
    SyncConfig,
    get_profile_service_config,
    get_sync_config,
    optional_env_var,
)
from recordsync.domain.details import PersonDetailsListener
from recordsync.domain.dispatch import (
    ChangeDispatcher,
    DependentForwarder,
    DirectChangeListener,
    ParentChangeListener,
    WaitingRegistry,
)
from recordsync.domain.enrichment import (
    CurriculumMembershipEnricher,
    PlacementEnricher,
    ProgrammeMembershipEnricher,
)
from recordsync.domain.model import RecordType
from recordsync.domain.publishing import DownstreamPublisher, QueueTarget
from recordsync.domain.requests import DependencyRequester

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from datetime import datetime
    from pathlib import Path

    from recordsync.domain.model import MirroredRecord
    from recordsync.domain.ports import (
        EntityStore,
        PublishTarget,
        RequestCache,
        RequestChannel,
        SnapshotStore,
    )

log = getLogger(__name__)

AGGREGATE_TYPES: tuple[str, ...] = (
    RecordType.CURRICULUM_MEMBERSHIP,
    RecordType.PROGRAMME_MEMBERSHIP,
    RecordType.PLACEMENT,
)

# Published as mirrored, to the extra targets only.
DETAIL_TYPES: tuple[str, ...] = (RecordType.PERSON, RecordType.QUALIFICATION)


@dataclass(slots=True)
class ReplayResult:
    received: int = 0
    invalid: int = 0
    dispatched: int = 0
    drained: int = 0


class SyncService:
    """Entry point for notifications; also consumes the in-process family queues."""

    def __init__(
        self,
        *,
        store: EntityStore,
        dispatcher: ChangeDispatcher,
        queue: InMemoryMessageQueue,
        config: SyncConfig,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.queue = queue
        self.config = config

    def handle(self, record: MirroredRecord) -> None:
        self.dispatcher.handle(record)

    def handle_payload(self, payload: object) -> MirroredRecord:
        """Validate a raw notification and dispatch it. Raises ``ValidationError``."""

        record = ChangeNotificationPayload.model_validate(payload).to_record()
        self.handle(record)
        return record

    def drain(self, *, max_messages: int = 10_000) -> int:
        """Feed queued family messages back through dispatch until every queue is idle."""

        processed = 0
        queue_names = tuple(self.config.family_queues.values())
        while processed < max_messages:
            progressed = False
            for queue_name in queue_names:
                message = self.queue.receive(queue_name)
                if message is None:
                    continue
                body, _group_key = message
                try:
                    self.handle_payload(body)
                except ValidationError:
                    log.exception("Dropping malformed message on %s", queue_name)
                processed += 1
                progressed = True
            if not progressed:
                break
        else:
            log.warning("Stopped draining after %s messages", processed)
        return processed


def build_sync_service(
    *,
    store: EntityStore,
    request_channel: RequestChannel,
    request_cache: RequestCache,
    publish_targets: Mapping[str, Sequence[PublishTarget]] | None = None,
    config: SyncConfig | None = None,
    queue: InMemoryMessageQueue | None = None,
    snapshots: SnapshotStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> SyncService:
    """Assemble the pipeline.

    Every aggregate family publishes to the event queue; ``publish_targets`` adds
    further targets (such as the profile service) per record type. Person-level detail
    types reach only the targets given for them in ``publish_targets``.
    """

    sync_config = config or SyncConfig()
    message_queue = queue or InMemoryMessageQueue()
    requester = DependencyRequester(
        request_channel, request_cache, ttl=sync_config.request_ttl, clock=clock
    )

    event_target = QueueTarget(message_queue, sync_config.event_queue)
    extra_targets = publish_targets or {}
    targets: dict[str, list[PublishTarget]] = {
        record_type: [*extra_targets.get(record_type, ()), event_target]
        for record_type in AGGREGATE_TYPES
    }
    for record_type in DETAIL_TYPES:
        targets[record_type] = list(extra_targets.get(record_type, ()))
    publisher = DownstreamPublisher(targets, required_types=AGGREGATE_TYPES)

    curriculum_memberships = CurriculumMembershipEnricher(
        store, requester, publisher, schema=sync_config.schema
    )
    programme_memberships = ProgrammeMembershipEnricher(
        store, requester, publisher, schema=sync_config.schema
    )
    placements = PlacementEnricher(store, requester, publisher, schema=sync_config.schema)

    waiting = WaitingRegistry(ttl=sync_config.request_ttl, clock=clock)
    dispatcher = ChangeDispatcher(
        store,
        snapshots if snapshots is not None else InMemorySnapshotStore(),
        requester,
        queue=message_queue,
        family_queues=sync_config.family_queues,
        waiting=waiting,
    )

    def forwarder(root_type: str, attribute: str) -> DependentForwarder:
        return DependentForwarder(
            root_type=root_type,
            attribute=attribute,
            store=store,
            requester=requester,
            queue=message_queue,
            queue_name=sync_config.family_queues[root_type],
            waiting=waiting,
        )

    register = dispatcher.register
    register(RecordType.CURRICULUM_MEMBERSHIP, DirectChangeListener(curriculum_memberships))
    register(
        RecordType.CURRICULUM_MEMBERSHIP,
        forwarder(RecordType.PROGRAMME_MEMBERSHIP, "programmeMembershipUuid"),
    )
    register(RecordType.PROGRAMME_MEMBERSHIP, DirectChangeListener(programme_memberships))
    register(
        RecordType.CONDITIONS_OF_JOINING,
        forwarder(RecordType.PROGRAMME_MEMBERSHIP, "programmeMembershipUuid"),
    )
    for parent in (RecordType.PROGRAMME, RecordType.CURRICULUM):
        register(parent, ParentChangeListener(curriculum_memberships, parent))
        register(parent, ParentChangeListener(programme_memberships, parent))

    register(RecordType.PLACEMENT, DirectChangeListener(placements))
    register(RecordType.PLACEMENT_SITE, forwarder(RecordType.PLACEMENT, "placementId"))
    register(RecordType.PLACEMENT_SPECIALTY, forwarder(RecordType.PLACEMENT, "placementId"))
    register(
        RecordType.POST_SPECIALTY,
        ParentChangeListener(placements, RecordType.POST, via_attribute="postId"),
    )
    for parent in (
        RecordType.POST,
        RecordType.SITE,
        RecordType.GRADE,
        RecordType.SPECIALTY,
        RecordType.TRUST,
    ):
        register(parent, ParentChangeListener(placements, parent))

    register(RecordType.PERSON, PersonDetailsListener(RecordType.PERSON, store, publisher))
    register(
        RecordType.QUALIFICATION,
        PersonDetailsListener(
            RecordType.QUALIFICATION, store, publisher, person_attribute="personId"
        ),
    )

    return SyncService(
        store=store, dispatcher=dispatcher, queue=message_queue, config=sync_config
    )


def build_default_sync_service(
    *,
    requests_out: Path,
    events_out: Path | None = None,
    config: SyncConfig | None = None,
) -> SyncService:
    """Service backed by the configured database, request cache and profile service."""

    sync_config = config or get_sync_config()
    if not is_started():
        startup()
    sessions = session_factory()
    store = SqlAlchemyEntityStore(sessions)

    request_cache: RequestCache
    if sync_config.redis_url:
        request_cache = RedisRequestCache.from_url(sync_config.redis_url)
    else:
        request_cache = SqlAlchemyRequestCache(sessions)

    publish_targets: dict[str, list[PublishTarget]] = {}
    if optional_env_var("PROFILE_SERVICE_URL"):
        profile_target = ProfileServiceTarget(ProfileServiceClient(get_profile_service_config()))
        publish_targets = {
            record_type: [profile_target] for record_type in (*AGGREGATE_TYPES, *DETAIL_TYPES)
        }
    else:
        log.info("PROFILE_SERVICE_URL not set, publishing to the event queue only")

    queue = InMemoryMessageQueue(sink=JsonLinesQueueSink(events_out) if events_out else None)
    return build_sync_service(
        store=store,
        request_channel=JsonLinesRequestChannel(requests_out, schema=sync_config.schema),
        request_cache=request_cache,
        publish_targets=publish_targets,
        config=sync_config,
        queue=queue,
    )


def replay_notifications(lines: Iterable[str], service: SyncService) -> ReplayResult:
    """Dispatch JSON-lines notifications in order, draining family queues as they fill."""

    result = ReplayResult()
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        result.received += 1
        try:
            record = ChangeNotificationPayload.model_validate_json(line).to_record()
        except ValidationError as exc:
            result.invalid += 1
            log.warning("Skipping line %s: %s", number, exc.errors(include_url=False))
            continue
        service.handle(record)
        result.dispatched += 1
        result.drained += service.drain()
    log.info(
        "Replayed %s notification(s): dispatched=%s, invalid=%s, drained=%s",
        result.received,
        result.dispatched,
        result.invalid,
        result.drained,
    )
    return result
