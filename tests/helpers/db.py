"""DB helpers for tests: bootstrap a temporary SQLite price store."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.client import create_db_engine, init_schema, make_session_factory, session_scope
from db.models.prices import PriceRecord


def bootstrap_sqlite_db(db_file: Path) -> tuple[Engine, sessionmaker[Session]]:
    """Create a SQLite database file, initialize schema, and return its handles.

    A file-backed database lets multiple connections (and the HTTP test
    client's worker threads) share the same state; in-memory SQLite databases
    are per-connection.
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(f"sqlite+pysqlite:///{db_file}")
    init_schema(engine)
    factory = make_session_factory(engine)
    _assert_prices_schema_in_sync(factory)
    return engine, factory


def count_prices(factory: sessionmaker[Session]) -> int:
    with session_scope(factory) as session:
        return session.query(PriceRecord).count()


def _assert_prices_schema_in_sync(factory: sessionmaker[Session]) -> None:
    """Quick sanity check: ORM column set matches the SQLite table column set."""

    expected = {c.name for c in PriceRecord.__table__.columns}
    with session_scope(factory) as session:
        rows = session.execute(sql_text("PRAGMA table_info('prices')")).fetchall()
        got = {row[1] for row in rows}  # (cid, name, type, notnull, dflt_value, pk)
    missing = expected - got
    extra = got - expected
    assert not missing and not extra, (
        f"prices schema drift: missing={missing or '∅'}, extra={extra or '∅'}"
    )
