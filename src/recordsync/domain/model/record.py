"""The generic envelope for every synced row."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from .enums import Operation

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

DEFAULT_SCHEMA = "tcs"


@dataclass(frozen=True, slots=True, kw_only=True)
class MirroredRecord:
    """A row mirrored from the upstream system of record.

    ``natural_id`` is stable across operations. Delete notifications frequently carry
    only the id, so ``attributes`` may be empty for them.
    """

    natural_id: str
    table_name: str
    schema_name: str = DEFAULT_SCHEMA
    operation: Operation = Operation.LOAD
    attributes: Mapping[str, str] = field(default_factory=dict["str", "str"])

    def get(self, name: str) -> str | None:
        value = self.attributes.get(name)
        if value is None or not value.strip():
            return None
        return value

    def with_operation(self, operation: Operation) -> MirroredRecord:
        return replace(self, operation=operation)

    @property
    def key(self) -> tuple[str, str]:
        return (self.table_name, self.natural_id)


def sorted_by_id(records: Iterable[MirroredRecord]) -> tuple[MirroredRecord, ...]:
    """Deterministic ordering used wherever a set of rows is iterated."""

    return tuple(sorted(records, key=lambda record: record.natural_id))


def record_message(record: MirroredRecord) -> dict[str, object]:
    """Notification-shaped body used when a record is forwarded to a queue."""

    return {
        "tisId": record.natural_id,
        "data": dict(record.attributes),
        "metadata": {
            "operation": record.operation.value,
            "schema-name": record.schema_name,
            "table-name": record.table_name,
        },
    }
