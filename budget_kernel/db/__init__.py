"""Database layer - engine, base classes, column types, and ORM listeners."""

from budget_kernel.db.base import Base, TrackedBase
from budget_kernel.db.engine import (
    build_engine,
    create_tables,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from budget_kernel.db.types import UTCDateTime, UUIDString

__all__ = [
    "build_engine",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
]
