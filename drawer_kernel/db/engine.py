"""
Module: drawer_kernel.db.engine
Responsibility: Process-wide engine and session factory, the transactional
    ``session_scope``, and classification of driver errors that may heal on
    a fresh connection.
Architecture position: Kernel > DB.  ``create_tables``/``drop_tables``
    import the closing models so their tables are registered on
    ``Base.metadata``; nothing else here reaches into outer layers.

Invariants enforced:
    - Any SQLAlchemy URL works.  SQLite (tests, single kiosk) shares one
      connection through StaticPool so ``sqlite://`` keeps its data between
      sessions; server databases get a pre-pinged QueuePool.
    - ``session_scope`` either commits or rolls back before it returns.

Failure modes:
    - RuntimeError from the accessors before ``init_engine_from_url``.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from drawer_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_factory: sessionmaker[Session] | None = None


def _engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict:
    if database_url.startswith("sqlite"):
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 5,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite://`` or
            ``postgresql+psycopg://user@host/drawer``.
        echo: Log emitted SQL.
        pool_size, max_overflow: QueuePool sizing; ignored for SQLite.

    Returns:
        The new Engine.
    """
    global _engine, _factory

    _engine = create_engine(
        database_url, echo=echo, **_engine_options(database_url, pool_size, max_overflow),
    )
    # Snapshots are handed out after commit; keep attributes loaded.
    _factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _factory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    The session factory.  Persistence services hold the factory, not a
    session: each load or save attempt opens its own transaction.
    """
    return _require_factory()


def get_session() -> Session:
    return _require_factory()()


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    Run a block in one transaction.

    Commits when the block finishes; on any exception rolls back and
    re-raises.  The session is closed either way.

    Usage::

        with session_scope(factory) as session:
            session.add(model)
    """
    session = (factory or _require_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        try:
            session.rollback()
        except SQLAlchemyError:
            logger.warning("transaction_rollback_failed", exc_info=True)
        logger.debug("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def is_transient_db_error(exc: BaseException) -> bool:
    """
    True when the failure is about the connection rather than the statement:
    OperationalError, InterfaceError, or a DBAPIError that invalidated its
    connection.
    """
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def _metadata():
    from drawer_kernel.db.base import Base
    import drawer_modules.closing.orm  # noqa: F401  registers closing tables

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the factory (test teardown)."""
    global _engine, _factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _factory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
