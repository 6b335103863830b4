"""
Module: mileage_kernel.db.engine
Responsibility: The process-wide engine and session factory for the voucher
    store, plus a commit-or-rollback session scope.
Architecture position: Kernel > DB.  Imports models only inside
    create_tables/drop_tables so Base.metadata is complete.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED.  Voucher transitions are guarded by
      conditional UPDATEs (``WHERE status = :expected``), not by isolation.
    - SQLite connections may be shared across threads and wait up to
      ``sqlite_busy_timeout`` seconds for the write lock, so two racing
      writers serialize instead of failing with "database is locked".
    - Sessions keep loaded state after commit (``expire_on_commit=False``);
      services return DTOs built from it.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from mileage_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _engine_options(
    url: URL,
    *,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    pool_timeout: int,
    pool_recycle: int,
    sqlite_busy_timeout: float,
) -> dict[str, Any]:
    if url.get_backend_name() == "sqlite":
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout,
            },
        }
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 15.0,
) -> Engine:
    """
    Create the engine and session factory.  A second call replaces both.

    Args:
        database_url: SQLAlchemy URL (postgresql://..., sqlite:///...).
        echo: Log every SQL statement.
        pool_size, max_overflow, pool_pre_ping, pool_timeout, pool_recycle:
            Connection pool settings; ignored for SQLite.
        sqlite_busy_timeout: Seconds a SQLite writer waits for the file lock.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    _engine = create_engine(
        url,
        echo=echo,
        **_engine_options(
            url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            sqlite_busy_timeout=sqlite_busy_timeout,
        ),
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": url.get_backend_name(), "database": url.database},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for code that opens one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One unit of work: commit on normal exit, roll back and re-raise on error.

    Usage:
        with session_scope() as session:
            VoucherWorkflowService(session, registry).submit_voucher(...)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the voucher, history, role and trip tables if missing."""
    from mileage_kernel.db.base import Base
    import mileage_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every kernel table.  Tests and local resets only."""
    from mileage_kernel.db.base import Base
    import mileage_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
