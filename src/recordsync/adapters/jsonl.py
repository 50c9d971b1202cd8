"""JSON-lines adapters: file-backed dependency request channel and message sink."""

from __future__ import annotations

import json
from threading import Lock
from typing import TYPE_CHECKING

from recordsync.domain.errors import TransportError
from recordsync.domain.model import DEFAULT_SCHEMA

from .schema import DataRequestMessage, OutboundMessage

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path


class _JsonLinesWriter:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = Lock()

    def write(self, line: str) -> None:
        try:
            with self._lock, self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise TransportError(f"Could not write to {self._path}: {exc}") from exc


class JsonLinesRequestChannel:
    """Appends one ``DataRequestMessage`` per dependency request to a file."""

    def __init__(self, path: Path, *, schema: str = DEFAULT_SCHEMA) -> None:
        self._writer = _JsonLinesWriter(path)
        self._schema = schema
        self.sent = 0

    def send(self, entity_type: str, where: Mapping[str, str]) -> None:
        message = DataRequestMessage(table=entity_type, where=dict(where), schema=self._schema)
        self._writer.write(message.model_dump_json(by_alias=True))
        self.sent += 1


class JsonLinesQueueSink:
    """Mirrors queue traffic as ``{"queue", "message": {"payload", "groupKey"}}`` lines."""

    def __init__(self, path: Path) -> None:
        self._writer = _JsonLinesWriter(path)

    def __call__(self, queue_name: str, body: Mapping[str, object], group_key: str) -> None:
        message = OutboundMessage(payload=dict(body), groupKey=group_key)
        envelope = {"queue": queue_name, "message": message.model_dump(mode="json", by_alias=True)}
        self._writer.write(json.dumps(envelope, sort_keys=True))
