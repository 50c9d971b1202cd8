"""Domain model package."""

from __future__ import annotations

from .aggregate import (
    Aggregate,
    ConditionsOfJoiningRef,
    CurriculumRef,
    DetailsAggregate,
    MembershipAggregate,
    PlacementAggregate,
    Tombstone,
)
from .enums import Operation, RecordType
from .record import DEFAULT_SCHEMA, MirroredRecord, record_message, sorted_by_id
from .tokens import DeletionSnapshot, DependencyRef, PendingRequestToken, request_cache_key

__all__ = [
    "DEFAULT_SCHEMA",
    "Aggregate",
    "ConditionsOfJoiningRef",
    "CurriculumRef",
    "DeletionSnapshot",
    "DependencyRef",
    "DetailsAggregate",
    "MembershipAggregate",
    "MirroredRecord",
    "Operation",
    "PendingRequestToken",
    "PlacementAggregate",
    "RecordType",
    "Tombstone",
    "record_message",
    "request_cache_key",
    "sorted_by_id",
]
