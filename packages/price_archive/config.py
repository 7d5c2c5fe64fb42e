"""Runtime settings for ``price_archive``.

Values come from environment variables; entry points call
``load_dotenv()`` first so a local ``.env`` is honored. ``DATABASE_URL`` wins
over the individual ``POSTGRES_*`` variables.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from sqlalchemy.engine import URL

_MiB = 1024 * 1024


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def _database_url(env: Mapping[str, str]) -> str:
    explicit = (env.get("DATABASE_URL") or "").strip()
    if explicit:
        return explicit
    url = URL.create(
        "postgresql+psycopg",
        username=env.get("POSTGRES_USER", "validator"),
        password=env.get("POSTGRES_PASSWORD", "val1dat0r"),
        host=env.get("POSTGRES_HOST", "127.0.0.1"),
        port=_env_int(env, "POSTGRES_PORT", 5432),
        database=env.get("POSTGRES_DB", "project-sem-1"),
    )
    return url.render_as_string(hide_password=False)


@dataclass(frozen=True)
class Settings:
    """Service configuration.

    Attributes
    ----------
    database_url:
        SQLAlchemy URL of the price store.
    http_host, http_port:
        Bind address for ``price-archive serve``.
    max_archive_bytes:
        Ceiling on the raw uploaded archive, enforced while reading the body.
    max_payload_bytes:
        Ceiling on the uncompressed ``data.csv`` entry.
    max_rows:
        Ceiling on data rows in one upload.
    db_pool_size, db_max_overflow, db_pool_recycle:
        Connection pool policy for non-SQLite stores.
    """

    database_url: str
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    max_archive_bytes: int = 50 * _MiB
    max_payload_bytes: int = 200 * _MiB
    max_rows: int = 1_000_000
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_recycle: int = 300

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        return cls(
            database_url=_database_url(env),
            http_host=env.get("HTTP_HOST", cls.http_host),
            http_port=_env_int(env, "HTTP_PORT", cls.http_port),
            max_archive_bytes=_env_int(
                env, "PRICE_ARCHIVE_MAX_ARCHIVE_BYTES", cls.max_archive_bytes
            ),
            max_payload_bytes=_env_int(
                env, "PRICE_ARCHIVE_MAX_PAYLOAD_BYTES", cls.max_payload_bytes
            ),
            max_rows=_env_int(env, "PRICE_ARCHIVE_MAX_ROWS", cls.max_rows),
            db_pool_size=_env_int(env, "PRICE_ARCHIVE_DB_POOL_SIZE", cls.db_pool_size),
            db_max_overflow=_env_int(env, "PRICE_ARCHIVE_DB_MAX_OVERFLOW", cls.db_max_overflow),
            db_pool_recycle=_env_int(env, "PRICE_ARCHIVE_DB_POOL_RECYCLE", cls.db_pool_recycle),
        )


__all__ = ["Settings"]
