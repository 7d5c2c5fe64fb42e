"""Persistence gateway for the ``prices`` table.

Functions here run inside a session supplied by the caller and never commit;
the caller's ``session_scope`` decides whether the whole unit of work commits
or rolls back.

Scope:
- Conditional inserts keyed on ``(created_at, name, category, price_minor)``
  plus the store-wide aggregates reported with every upload.
- Filtered, ordered reads for exports.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import distinct, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from db.models.prices import IDENTITY_COLUMNS, PriceRecord

from .errors import PersistenceError
from .logging_setup import get_logger
from .models import CanonicalRecord, ExportFilter, PersistedRecord

logger = get_logger("price_archive.persistence")

# Rows per INSERT statement; 5 bound columns per row keeps each statement under
# SQLite's historical 999-parameter limit.
_INSERT_BATCH = 150

_DIALECT_INSERTS: dict[str, Callable[..., Any]] = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True, slots=True)
class CommitResult:
    """Outcome of :func:`commit_records`.

    ``inserted`` and ``duplicates`` refer to the candidate records; the totals
    cover every row in the store after the inserts.
    """

    inserted: int
    duplicates: int
    total_categories: int
    total_price_minor: int


def _dialect_insert(session: Session) -> Callable[..., Any]:
    name = session.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[name]
    except KeyError:
        raise PersistenceError(f"conditional inserts are not supported on {name!r}") from None


def _row_values(record: CanonicalRecord) -> dict[str, Any]:
    return {
        "external_id": record.external_id,
        "created_at": record.created_at,
        "name": record.name,
        "category": record.category,
        "price_minor": record.price_minor,
    }


def _batches(rows: Sequence[dict[str, Any]], size: int) -> Iterable[Sequence[dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def insert_new_records(session: Session, records: Iterable[CanonicalRecord]) -> int:
    """Insert records whose identity key is not stored yet; return the count.

    Uses ``INSERT ... ON CONFLICT (identity) DO NOTHING RETURNING id``, so a
    record that already exists (including one committed by a concurrent upload
    while this transaction waited on it) is skipped rather than raising.
    """

    insert = _dialect_insert(session)
    # Insert in identity-key order so concurrent uploads touching the same keys
    # acquire index locks in the same order.
    ordered = sorted(records, key=lambda r: r.identity_key)
    rows = [_row_values(r) for r in ordered]

    inserted = 0
    for chunk in _batches(rows, _INSERT_BATCH):
        stmt = (
            insert(PriceRecord)
            .values(list(chunk))
            .on_conflict_do_nothing(index_elements=list(IDENTITY_COLUMNS))
            .returning(PriceRecord.id)
        )
        inserted += len(session.execute(stmt).scalars().all())
    return inserted


def store_totals(session: Session) -> tuple[int, int]:
    """Return ``(distinct categories, sum of prices in minor units)`` store-wide."""

    stmt = select(
        func.count(distinct(PriceRecord.category)),
        func.coalesce(func.sum(PriceRecord.price_minor), 0),
    )
    categories, price_sum = session.execute(stmt).one()
    return int(categories), int(price_sum)


def commit_records(session: Session, records: Sequence[CanonicalRecord]) -> CommitResult:
    """Conditionally insert ``records`` and compute store-wide aggregates.

    Both steps run in the caller's transaction so the aggregates reflect the
    inserts of this unit of work and nothing from a half-applied batch is ever
    visible to other sessions.
    """

    inserted = insert_new_records(session, records)
    categories, price_sum = store_totals(session)
    result = CommitResult(
        inserted=inserted,
        duplicates=len(records) - inserted,
        total_categories=categories,
        total_price_minor=price_sum,
    )
    logger.info(
        "commit: candidates=%d inserted=%d stored_duplicates=%d categories=%d",
        len(records),
        result.inserted,
        result.duplicates,
        result.total_categories,
    )
    return result


def query_records(session: Session, flt: ExportFilter) -> list[PersistedRecord]:
    """Return stored records matching ``flt`` ordered by date, then id.

    Every bound is inclusive and applied only when set.
    """

    stmt = select(
        PriceRecord.id,
        PriceRecord.name,
        PriceRecord.category,
        PriceRecord.price_minor,
        PriceRecord.created_at,
    )
    if flt.date_from is not None:
        stmt = stmt.where(PriceRecord.created_at >= flt.date_from)
    if flt.date_to is not None:
        stmt = stmt.where(PriceRecord.created_at <= flt.date_to)
    if flt.price_from is not None:
        stmt = stmt.where(PriceRecord.price_minor >= flt.price_from)
    if flt.price_to is not None:
        stmt = stmt.where(PriceRecord.price_minor <= flt.price_to)
    stmt = stmt.order_by(PriceRecord.created_at, PriceRecord.id)

    return [
        PersistedRecord(
            id=row.id,
            name=row.name,
            category=row.category,
            price_minor=row.price_minor,
            created_at=row.created_at,
        )
        for row in session.execute(stmt)
    ]


__all__ = [
    "CommitResult",
    "commit_records",
    "insert_new_records",
    "query_records",
    "store_totals",
]
