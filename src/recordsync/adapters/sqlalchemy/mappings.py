"""SQLAlchemy table metadata for mirrored records and pending requests."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Index,
    MetaData,
    String,
    Table,
    TypeDecorator,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

metadata = MetaData()


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mirrored_record_table = Table(
    "mirrored_record",
    metadata,
    Column("table_name", String(64), primary_key=True),
    Column("natural_id", String(128), primary_key=True),
    Column("schema_name", String(64), nullable=False),
    Column("operation", String(16), nullable=False),
    Column("attributes", JSON, nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
)

Index("ix_mirrored_record_table_name", mirrored_record_table.c.table_name)

pending_request_table = Table(
    "pending_request",
    metadata,
    Column("entity_type", String(64), primary_key=True),
    Column("lookup_key", String(128), primary_key=True),
    Column("requested_at", UTCDateTime(), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the adapter metadata."""

    log.info("Creating all tables")
    metadata.create_all(engine)
