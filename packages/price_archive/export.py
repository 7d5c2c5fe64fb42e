"""Serialize stored price records back into a downloadable archive.

CSV layout (exact)::

    id,name,category,price,create_date

``price`` has exactly two decimals and an ASCII dot; ``create_date`` is
``YYYY-MM-DD``. Lines end with ``\\n``. The same ordered input always produces
the same bytes.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from .archives import pack_payload
from .models import ArchiveKind, PersistedRecord

EXPORT_HEADER = ("id", "name", "category", "price", "create_date")


def format_price(price_minor: int) -> str:
    units, cents = divmod(price_minor, 100)
    return f"{units}.{cents:02d}"


def serialize_records(records: Iterable[PersistedRecord]) -> bytes:
    """Render ``records`` (already ordered) as UTF-8 CSV bytes."""

    buf = io.StringIO(newline="")
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for r in records:
        writer.writerow(
            (
                str(r.id),
                r.name,
                r.category,
                format_price(r.price_minor),
                r.created_at.isoformat(),
            )
        )
    return buf.getvalue().encode("utf-8")


def build_export_archive(
    records: Iterable[PersistedRecord], kind: ArchiveKind = ArchiveKind.ZIP
) -> bytes:
    """Serialize ``records`` and wrap them as ``data.csv`` in an archive."""

    return pack_payload(serialize_records(records), kind)


__all__ = [
    "EXPORT_HEADER",
    "build_export_archive",
    "format_price",
    "serialize_records",
]
