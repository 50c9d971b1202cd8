"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import EntityStore, SnapshotStore
from .publishing import MessageQueue, PublishTarget
from .requests import RequestCache, RequestChannel

__all__ = [
    "EntityStore",
    "MessageQueue",
    "PublishTarget",
    "RequestCache",
    "RequestChannel",
    "SnapshotStore",
]
