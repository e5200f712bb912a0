"""
Engine and session handling for the SQL-backed draft store.

One process-wide engine is held here.  The key/value store either receives
its own sessionmaker or falls back to the one built by init_engine_from_url().

    init_engine_from_url("sqlite:///drafts.db")
    create_tables()
    with session_scope() as session:
        ...

``sqlite://`` (or ``:memory:``) gets a StaticPool so every session shares the
single in-memory connection; without it each session would see an empty
database.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_factory: sessionmaker[Session] | None = None


def _is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """Create the process-wide engine, replacing (and disposing) any previous one."""
    global _engine, _factory

    options: dict = {"echo": echo}
    if _is_memory_sqlite(database_url):
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    else:
        options["pool_pre_ping"] = True

    reset_engine()
    _engine = create_engine(database_url, **options)
    _factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("draft_store_engine_ready", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Draft store engine not initialized; call init_engine_from_url() first")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _factory is None:
        raise RuntimeError("Draft store engine not initialized; call init_engine_from_url() first")
    return _factory


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    One transaction: commit when the block exits normally, roll back and
    re-raise otherwise.  The session is always closed.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("draft_store_rollback", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from stock_kernel.db.base import Base
    import stock_kernel.models  # noqa: F401  registers tables on Base.metadata

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _factory = None


atexit.register(reset_engine)
