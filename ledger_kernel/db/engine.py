"""
Module: ledger_kernel.db.engine
Responsibility: Engine construction, the process-wide session factory, and
    the unit-of-work scopes every writer goes through.
Architecture position: Kernel > DB.  Imports db/base.py and, inside
    create_tables(), the models package.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; the recurrence run adds its own
      advisory lock and SELECT ... FOR UPDATE on top.
    - SQLite transactions begin DEFERRED unless the connection carries the
      ``sqlite_begin`` execution option; the recurrence run sets it to
      IMMEDIATE so it holds the write lock from its first statement and
      concurrent writers queue behind it (up to the busy timeout).
    - File-backed SQLite runs in WAL mode, so open readers never block a
      writer's commit.
    - SQLite enforces foreign keys (PRAGMA foreign_keys=ON).

Failure modes:
    - RuntimeError from get_engine()/get_session_factory() before
      init_engine_from_url().
    - OperationalError when the database is unreachable or the SQLite write
      lock is not granted within the busy timeout.
"""

import atexit
from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."

# Execution option naming the SQLite BEGIN mode (DEFERRED or IMMEDIATE).
SQLITE_BEGIN_OPTION = "sqlite_begin"


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Create an Engine for PostgreSQL or SQLite without touching module state.

    PostgreSQL gets a pooled engine at READ COMMITTED.  SQLite gets the
    BEGIN / WAL / foreign-key connection hooks; in-memory SQLite URLs use
    a StaticPool so every session sees the same database.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs: dict = {
            "echo": echo,
            "connect_args": {
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout,
            },
        }
        in_memory = url.database in (None, "", ":memory:")
        if in_memory:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        _install_sqlite_hooks(engine, wal=not in_memory)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def _install_sqlite_hooks(engine: Engine, wal: bool) -> None:
    """Take over transaction control from pysqlite.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT handling.  Disabling the driver's own transaction handling
    and emitting BEGIN ourselves fixes that, and lets a writer ask for
    BEGIN IMMEDIATE through SQLITE_BEGIN_OPTION while readers stay DEFERRED.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Preconditions: database_url is a valid PostgreSQL or SQLite URL.
        A second call overwrites the first (the previous engine is disposed).
    Postconditions: get_engine/get_session/session_scope use this engine.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
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
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )

    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory bound to the module engine.  Triggers open one session per run."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


@contextmanager
def transaction_scope(
    session_factory: Callable[[], Session],
) -> Generator[Session, None, None]:
    """One unit of work on a fresh session from ``session_factory``.

    Commits when the block exits normally.  On any exception the session
    is rolled back, the rollback is logged and the exception re-raised.
    The session is always closed.
    """
    session = session_factory()
    logger.debug("transaction_started")
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


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    transaction_scope() bound to the module-level session factory.

    Raises:
        RuntimeError: If engine is not initialized.
    """
    with transaction_scope(get_session_factory()) as session:
        yield session


def create_tables(engine: Engine | None = None) -> None:
    """Create missing tables on ``engine`` (default: the module engine)."""
    from ledger_kernel.db.base import Base

    # Importing the package registers every model on Base.metadata.
    import ledger_kernel.models  # noqa: F401

    target = engine or get_engine()
    Base.metadata.create_all(target)
    logger.info("tables_created", extra={"dialect": target.dialect.name})


def reset_engine() -> None:
    """Dispose the module engine and forget the factory (tests, CLI re-entry)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)

