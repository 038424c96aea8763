"""
Module: jewel_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and schema creation.  The single point of database
    connection configuration for the persistence sink.
Architecture position: Kernel > DB.  May import from db/base.py and models/.

Invariants enforced:
    - Any SQLAlchemy URL is accepted; SQLite (file or in-memory) is used for
      single-shop installs and tests, MySQL/PostgreSQL in hosted installs.
    - In-memory SQLite uses a StaticPool so every session sees one database.

Failure modes:
    - RuntimeError if get_engine/get_session_factory called before
      init_engine_from_url().
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from jewel_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level engine and session factory are initialized.
        A second call replaces the first.

    Args:
        database_url: SQLAlchemy URL (e.g. ``sqlite:///:memory:``).
        echo: If True, log all SQL statements.
    """
    global _engine, _SessionFactory

    kwargs: dict = {"echo": echo}
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    _engine = create_engine(database_url, **kwargs)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def create_tables() -> None:
    """Create all tables for the registered records."""
    from jewel_kernel.db.base import Base
    import jewel_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop all tables.  FOR TESTING ONLY."""
    from jewel_kernel.db.base import Base
    import jewel_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
