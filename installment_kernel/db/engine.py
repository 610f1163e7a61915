"""
Module: installment_kernel.db.engine
Responsibility: Owns the process-wide SQLAlchemy engine and session factory,
    and the commit-or-rollback scope callers wrap engine operations in.
Architecture position: Kernel > DB.  Services never import this module;
    they receive a Session.  Entry points (scripts, tests, an API layer)
    call init_engine_from_url() once and open sessions through here.

Supported backends:
    - PostgreSQL: QueuePool with pre-ping, READ COMMITTED.  Payment and
      balance rows are locked explicitly with SELECT ... FOR UPDATE.
    - SQLite: development and the default test database.  pysqlite's own
      transaction handling is switched off and SQLAlchemy emits BEGIN, which
      makes SAVEPOINT work for the expired-payment sweep and for creating
      balance rows.  SQLite ignores FOR UPDATE.

Failure modes:
    - RuntimeError from any accessor before init_engine_from_url().
    - Pool exhaustion when more than pool_size + max_overflow sessions are
      open at once (PostgreSQL).
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from installment_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Database not initialized; call init_engine_from_url() first"


def _sqlite_engine(url: str, echo: bool) -> Engine:
    engine = create_engine(url, echo=echo)

    @event.listens_for(engine, "connect")
    def _driver_autocommit(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _postgres_engine(url: str, echo: bool, **pool_options) -> Engine:
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **pool_options,
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Calling it again replaces both; the previous engine is not disposed
    (use reset_engine() for that).  Pool arguments only apply to
    PostgreSQL.  Sessions are created with ``expire_on_commit=False`` so
    result objects stay readable after session_scope() commits.
    """
    global _engine, _SessionFactory

    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        _engine = _sqlite_engine(database_url, echo)
    else:
        _engine = _postgres_engine(
            database_url,
            echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": backend,
            "pool_size": None if backend == "sqlite" else pool_size,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for threads that each need their own session."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One transaction around a block of engine operations.

    Commits on normal exit.  Any exception rolls back, is logged as
    ``transaction_rolled_back`` and re-raised.  The session is always
    closed.

    Usage:
        with session_scope() as session:
            ReconciliationEngine(session).confirm(payment_id, actor_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from installment_kernel.db.base import Base
    import installment_kernel.models  # noqa: F401  (registers the tables)

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every kernel table.  Tests and local resets only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
