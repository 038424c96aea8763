"""Database primitives for the persistence sink."""

from jewel_kernel.db.base import Base, TimestampedBase
from jewel_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)

__all__ = [
    "Base",
    "TimestampedBase",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
]
