"""Upload and export pipelines for ``price_archive``.

Both entry points take the store handle explicitly: a SQLAlchemy
``sessionmaker`` whose sessions the pipeline opens inside
:func:`db.client.session_scope`. Parsing, validation and in-upload
deduplication happen before any session is opened; the database is touched
only by the single unit of work at the end.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from db.client import session_scope

from .archives import unwrap_payload
from .config import Settings
from .duplicates import UploadDeduplicator, Verdict
from .errors import InputRangeError, LimitExceededError, PersistenceError
from .export import build_export_archive
from .logging_setup import get_logger
from .models import (
    ArchiveKind,
    CanonicalRecord,
    ExportFilter,
    IngestStats,
    Rejected,
    UploadSummary,
)
from .normalizers import iter_raw_rows, normalize_row, parse_iso_date, parse_price_minor
from .persistence import commit_records, query_records

logger = get_logger("price_archive.api")


def collect_candidates(
    rows: Iterable[list[str]],
) -> tuple[IngestStats, list[CanonicalRecord]]:
    """Normalize and deduplicate ``rows`` in file order.

    Returns the per-cause tallies and the first occurrence of every identity
    key, ready for :func:`~price_archive.persistence.commit_records`.
    """

    stats = IngestStats()
    dedup = UploadDeduplicator()
    for row in rows:
        stats.total_rows += 1
        result = normalize_row(row)
        if isinstance(result, Rejected):
            stats.rejected_by_reason[result.reason] += 1
            logger.debug(
                "row %d rejected (%s) %s", stats.total_rows, result.reason, result.detail
            )
            continue
        if dedup.accept(result) is Verdict.DUPLICATE:
            logger.debug("row %d duplicates an earlier row of this upload", stats.total_rows)
    stats.in_upload_duplicates = dedup.duplicates
    return stats, dedup.novel


def ingest_archive(
    factory: sessionmaker[Session],
    data: bytes,
    kind: ArchiveKind | str = ArchiveKind.ZIP,
    *,
    max_archive_bytes: int = Settings.max_archive_bytes,
    max_payload_bytes: int = Settings.max_payload_bytes,
    max_rows: int = Settings.max_rows,
) -> UploadSummary:
    """Ingest an uploaded archive and return the upload summary.

    Raises
    ------
    LimitExceededError
        The archive, its payload or its row count is over the ceiling.
    ArchiveFormatError, PayloadNotFoundError, MalformedPayloadError
        The upload cannot be read.
    PersistenceError
        The unit of work failed and was rolled back; nothing was stored.
    """

    if len(data) > max_archive_bytes:
        raise LimitExceededError(f"archive is {len(data)} bytes; limit is {max_archive_bytes}")

    payload = unwrap_payload(data, ArchiveKind(kind), max_payload_bytes=max_payload_bytes)
    stats, novel = collect_candidates(iter_raw_rows(payload, max_rows=max_rows))

    try:
        with session_scope(factory) as session:
            result = commit_records(session, novel)
    except SQLAlchemyError as exc:
        logger.error("upload aborted, unit of work rolled back: %s", exc)
        raise PersistenceError("failed to store price records; please retry") from exc

    stats.stored_duplicates = result.duplicates
    stats.inserted = result.inserted
    logger.info(
        "upload: rows=%d inserted=%d rejected=%d in_upload_duplicates=%d "
        "stored_duplicates=%d reasons=%s",
        stats.total_rows,
        stats.inserted,
        stats.rejected,
        stats.in_upload_duplicates,
        stats.stored_duplicates,
        dict(stats.rejected_by_reason),
    )
    return UploadSummary(
        total_count=stats.total_rows,
        duplicates_count=stats.duplicates_or_rejected,
        total_items=stats.inserted,
        total_categories=result.total_categories,
        total_price_minor=result.total_price_minor,
    )


def _parse_bound(raw: str | None, label: str, parse: Callable[[str], Any]) -> Any:
    if raw is None or not raw.strip():
        return None
    try:
        return parse(raw)
    except ValueError as exc:
        raise InputRangeError(f"invalid {label}: {raw!r}") from exc


def parse_export_filter(
    start: str | None = None,
    end: str | None = None,
    min_price: str | None = None,
    max_price: str | None = None,
) -> ExportFilter:
    """Build an :class:`ExportFilter` from optional text bounds.

    Dates are ``YYYY-MM-DD``; prices are major units parsed like upload prices
    (``"12,50"`` and ``"12.50"`` are equal). Blank values are treated as
    absent. Raises :class:`InputRangeError` for malformed or inverted bounds.
    """

    date_from: date | None = _parse_bound(start, "start date", parse_iso_date)
    date_to: date | None = _parse_bound(end, "end date", parse_iso_date)
    price_from: int | None = _parse_bound(min_price, "minimum price", parse_price_minor)
    price_to: int | None = _parse_bound(max_price, "maximum price", parse_price_minor)
    return ExportFilter(
        date_from=date_from,
        date_to=date_to,
        price_from=price_from,
        price_to=price_to,
    )


def export_archive(
    factory: sessionmaker[Session],
    flt: ExportFilter,
    kind: ArchiveKind | str = ArchiveKind.ZIP,
) -> bytes:
    """Return an archive with every stored record matching ``flt``."""

    try:
        with session_scope(factory) as session:
            records = query_records(session, flt)
    except SQLAlchemyError as exc:
        logger.error("export query failed: %s", exc)
        raise PersistenceError("failed to read price records; please retry") from exc

    archive = build_export_archive(records, ArchiveKind(kind))
    logger.info("export: records=%d bytes=%d filter=%s", len(records), len(archive), flt)
    return archive


__all__ = [
    "collect_candidates",
    "export_archive",
    "ingest_archive",
    "parse_export_filter",
]
