"""Synchronisation defaults for the change pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from .env import float_env_var, optional_env_var
from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_SCHEMA: Final[str] = "tcs"
DEFAULT_REQUEST_TTL_MINUTES: Final[float] = 60.0
DEFAULT_EVENT_QUEUE: Final[str] = "record-events"
DEFAULT_FAMILY_QUEUES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "ProgrammeMembership": "programme-membership",
        "Placement": "placement",
    }
)


@dataclass(frozen=True, slots=True)
class SyncConfig:
    schema: str = DEFAULT_SCHEMA
    request_ttl: timedelta = timedelta(minutes=DEFAULT_REQUEST_TTL_MINUTES)
    redis_url: str | None = None
    event_queue: str = DEFAULT_EVENT_QUEUE
    family_queues: Mapping[str, str] = field(default_factory=lambda: DEFAULT_FAMILY_QUEUES)


def get_sync_config() -> SyncConfig:
    ttl_minutes = float_env_var("REQUEST_CACHE_TTL_MINUTES", DEFAULT_REQUEST_TTL_MINUTES)
    if ttl_minutes <= 0:
        raise ConfigurationError("REQUEST_CACHE_TTL_MINUTES must be positive")
    return SyncConfig(
        schema=optional_env_var("RECORDSYNC_SCHEMA") or DEFAULT_SCHEMA,
        request_ttl=timedelta(minutes=ttl_minutes),
        redis_url=optional_env_var("REDIS_URL"),
        event_queue=optional_env_var("RECORDSYNC_EVENT_QUEUE") or DEFAULT_EVENT_QUEUE,
    )
