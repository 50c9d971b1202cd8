"""SQLAlchemy adapter package for recordsync."""

from __future__ import annotations

from .engine import StartupError, configured_engine, is_started, session_factory, shutdown, startup
from .mappings import create_all_tables, metadata, mirrored_record_table, pending_request_table
from .repositories import SqlAlchemyEntityStore, SqlAlchemyRequestCache

__all__ = [
    "SqlAlchemyEntityStore",
    "SqlAlchemyRequestCache",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "mirrored_record_table",
    "pending_request_table",
    "session_factory",
    "shutdown",
    "startup",
]
