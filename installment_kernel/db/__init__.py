"""Database layer: declarative base, column types, engine and sessions."""

from installment_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from installment_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)
from installment_kernel.db.types import ZERO, as_money, enum_column

__all__ = [
    "UUID",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "ZERO",
    "as_money",
    "enum_column",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "is_postgres",
    "reset_engine",
    "session_scope",
]
