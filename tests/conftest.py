"""Pytest configuration for test isolation.

Every test that touches the store gets its own file-backed SQLite database
under ``tmp_path`` so tests never share persisted rows. Environment variables
read by :class:`price_archive.config.Settings` are cleared so a developer's
local ``.env`` or shell cannot leak into assertions.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from tests.helpers.db import bootstrap_sqlite_db

_SETTINGS_ENV = (
    "DATABASE_URL",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_DB",
    "HTTP_HOST",
    "HTTP_PORT",
    "PRICE_ARCHIVE_MAX_ARCHIVE_BYTES",
    "PRICE_ARCHIVE_MAX_PAYLOAD_BYTES",
    "PRICE_ARCHIVE_MAX_ROWS",
    "PRICE_ARCHIVE_DB_POOL_SIZE",
    "PRICE_ARCHIVE_DB_MAX_OVERFLOW",
    "PRICE_ARCHIVE_DB_POOL_RECYCLE",
    "PRICE_ARCHIVE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def sqlite_store(tmp_path: Path) -> Iterator[tuple[Engine, sessionmaker[Session]]]:
    engine, factory = bootstrap_sqlite_db(tmp_path / "prices.db")
    yield engine, factory
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_store: tuple[Engine, sessionmaker[Session]]) -> sessionmaker[Session]:
    return sqlite_store[1]


@pytest.fixture
def isolated_pkg_logger() -> Iterator[logging.Logger]:
    """Strip and afterwards restore the ``price_archive`` logger's handlers."""

    logger = logging.getLogger("price_archive")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
