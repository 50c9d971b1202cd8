"""Entity store and request cache backed by SQLAlchemy sessions.

Every call runs in its own short transaction so the store can be shared between
worker threads. Writes are single-statement upserts on sqlite and PostgreSQL; other
dialects update first and fall back to an insert that tolerates a concurrent one.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from recordsync.domain.model import MirroredRecord, Operation

from .mappings import mirrored_record_table, pending_request_table

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from datetime import timedelta

    from sqlalchemy import ColumnElement, Row, Table
    from sqlalchemy.orm import Session, sessionmaker

    from recordsync.domain.model import PendingRequestToken


_DIALECT_INSERTS: dict[str, Callable[[Table], Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_record(row: Row[Any]) -> MirroredRecord:
    attributes = cast("dict[str, str]", row.attributes or {})
    return MirroredRecord(
        natural_id=row.natural_id,
        table_name=row.table_name,
        schema_name=row.schema_name,
        operation=Operation(row.operation),
        attributes=dict(attributes),
    )


def _upsert(
    session: Session, table: Table, keys: Mapping[str, object], values: Mapping[str, object]
) -> None:
    dialect_insert = _DIALECT_INSERTS.get(session.get_bind().dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(table).values(**keys, **values)
        session.execute(stmt.on_conflict_do_update(index_elements=list(keys), set_=dict(values)))
        return
    key = and_(*(table.c[name] == value for name, value in keys.items()))
    if session.execute(update(table).where(key).values(**values)).rowcount:
        return
    try:
        with session.begin_nested():
            session.execute(insert(table).values(**keys, **values))
    except IntegrityError:
        # Another worker inserted the row between our update and insert.
        session.execute(update(table).where(key).values(**values))


class SqlAlchemyEntityStore:
    """All mirrored types share one table keyed by ``(table_name, natural_id)``."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def find_by_id(self, table_name: str, natural_id: str) -> MirroredRecord | None:
        table = mirrored_record_table
        stmt = select(table).where(
            table.c.table_name == table_name, table.c.natural_id == natural_id
        )
        with self._session_factory() as session:
            row = session.execute(stmt).one_or_none()
        return _to_record(row) if row is not None else None

    def find_by_relation(
        self, table_name: str, attribute: str, related_id: str
    ) -> Sequence[MirroredRecord]:
        return self.find_by_attributes(table_name, {attribute: related_id})

    def find_by_attributes(
        self, table_name: str, criteria: Mapping[str, str]
    ) -> Sequence[MirroredRecord]:
        table = mirrored_record_table
        conditions: list[ColumnElement[bool]] = [table.c.table_name == table_name]
        conditions.extend(
            table.c.attributes[name].as_string() == value for name, value in criteria.items()
        )
        stmt = select(table).where(and_(*conditions)).order_by(table.c.natural_id)
        with self._session_factory() as session:
            rows = session.execute(stmt).all()
        return [_to_record(row) for row in rows]

    def save(self, record: MirroredRecord) -> None:
        keys = {"table_name": record.table_name, "natural_id": record.natural_id}
        values = {
            "schema_name": record.schema_name,
            "operation": record.operation.value,
            "attributes": dict(record.attributes),
            "updated_at": self._clock(),
        }
        with self._session_factory.begin() as session:
            _upsert(session, mirrored_record_table, keys, values)

    def delete_by_id(self, table_name: str, natural_id: str) -> bool:
        table = mirrored_record_table
        stmt = delete(table).where(
            table.c.table_name == table_name, table.c.natural_id == natural_id
        )
        with self._session_factory.begin() as session:
            result = session.execute(stmt)
        return result.rowcount > 0

    def count(self, table_name: str | None = None) -> int:
        table = mirrored_record_table
        stmt = select(table.c.natural_id)
        if table_name is not None:
            stmt = stmt.where(table.c.table_name == table_name)
        with self._session_factory() as session:
            return len(session.execute(stmt).all())


class SqlAlchemyRequestCache:
    """Pending dependency requests with an expiry column; expired rows are ignored."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def contains(self, entity_type: str, lookup_key: str) -> bool:
        table = pending_request_table
        stmt = select(table.c.expires_at).where(
            table.c.entity_type == entity_type, table.c.lookup_key == lookup_key
        )
        with self._session_factory() as session:
            expires_at = session.execute(stmt).scalar_one_or_none()
        return expires_at is not None and expires_at > self._clock()

    def add(self, token: PendingRequestToken, ttl: timedelta) -> None:
        keys = {"entity_type": token.entity_type, "lookup_key": token.natural_id}
        values = {"requested_at": token.requested_at, "expires_at": token.requested_at + ttl}
        with self._session_factory.begin() as session:
            _upsert(session, pending_request_table, keys, values)

    def evict(self, entity_type: str, lookup_key: str) -> None:
        table = pending_request_table
        with self._session_factory.begin() as session:
            session.execute(
                delete(table).where(
                    table.c.entity_type == entity_type, table.c.lookup_key == lookup_key
                )
            )

    def purge_expired(self) -> int:
        table = pending_request_table
        with self._session_factory.begin() as session:
            result = session.execute(delete(table).where(table.c.expires_at <= self._clock()))
        return result.rowcount
