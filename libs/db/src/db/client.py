"""SQLAlchemy engine/session helpers for the price store.

Usage
-----
from db.client import create_db_engine, make_session_factory, session_scope

engine = create_db_engine(url)
factory = make_session_factory(engine)
with session_scope(factory) as s:
    s.execute(...)

Nothing here is process-global: callers own the engine and pass the session
factory (or a session) to the code that needs the store.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from .models.prices import Base


def create_db_engine(
    database_url: str,
    *,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_recycle: int = 300,
) -> Engine:
    """Create an engine with the service's pooling defaults.

    SQLite URLs (used by tests and local runs) skip pool sizing, which the
    SQLite pools do not accept, and allow connections to cross threads so the
    HTTP thread pool can share them.
    """

    if not database_url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")

    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if make_url(database_url).get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_recycle=pool_recycle,
        )
    return create_engine(database_url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory bound to ``engine``."""

    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(engine: Engine) -> None:
    """Create all tables and indexes declared on ``Base.metadata``."""

    Base.metadata.create_all(bind=engine)


__all__ = [
    "create_db_engine",
    "init_schema",
    "make_session_factory",
    "session_scope",
]
