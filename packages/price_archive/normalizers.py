"""CSV row parsing and normalization for price uploads.

Rows are read with the stdlib :mod:`csv` module (UTF-8, RFC 4180 quoting).
Expected column order::

    id, name, category, price, create_date

The first line is a header and is always skipped. ``normalize_row`` is pure:
it neither consults the store nor knows which rows were already seen.

Normalization rules:
- every field is trimmed and must be non-empty;
- ``price`` is a plain decimal literal with ``.`` or ``,`` as the decimal
  separator, converted to minor units with ``ROUND_HALF_UP`` and required to
  be positive after rounding;
- ``create_date`` must be exactly ``YYYY-MM-DD``.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterator, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import LimitExceededError, MalformedPayloadError
from .models import CanonicalRecord, Rejected, RejectReason

FIELD_COUNT = 5
# Prices are stored in a 32-bit INTEGER column.
MAX_PRICE_MINOR = 2**31 - 1

_PRICE_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")
_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_HUNDRED = Decimal(100)


def parse_price_minor(raw: str) -> int:
    """Parse a price literal into positive minor units.

    ``"12,50"`` and ``"12.50"`` both yield ``1250``; ``"0.005"`` rounds up to
    ``1``. Raises ``ValueError`` for anything that is not a plain decimal or
    that rounds to zero or below.
    """

    s = raw.strip().replace(",", ".")
    if not _PRICE_RE.fullmatch(s):
        raise ValueError(f"invalid price: {raw!r}")
    try:
        minor = (Decimal(s) * _HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"invalid price: {raw!r}") from exc
    if minor <= 0:
        raise ValueError(f"price must be positive: {raw!r}")
    if minor > MAX_PRICE_MINOR:
        raise ValueError(f"price out of range: {raw!r}")
    return int(minor)


def parse_iso_date(raw: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` calendar date."""

    s = raw.strip()
    # date.fromisoformat also accepts compact and week forms; pin the layout.
    if not _DATE_RE.fullmatch(s):
        raise ValueError(f"invalid date: {raw!r}")
    return date.fromisoformat(s)


def normalize_row(fields: Sequence[str]) -> CanonicalRecord | Rejected:
    """Validate one raw CSV row and return its canonical form or a rejection."""

    if len(fields) != FIELD_COUNT:
        return Rejected(
            RejectReason.FIELD_COUNT, f"expected {FIELD_COUNT} fields, got {len(fields)}"
        )

    external_id, name, category, price_raw, date_raw = (f.strip() for f in fields)
    if not (external_id and name and category and price_raw and date_raw):
        return Rejected(RejectReason.EMPTY_FIELD)

    try:
        created_at = parse_iso_date(date_raw)
    except ValueError as exc:
        return Rejected(RejectReason.INVALID_DATE, str(exc))

    try:
        price_minor = parse_price_minor(price_raw)
    except ValueError as exc:
        return Rejected(RejectReason.INVALID_PRICE, str(exc))

    return CanonicalRecord(
        external_id=external_id,
        name=name,
        category=category,
        price_minor=price_minor,
        created_at=created_at,
    )


def iter_raw_rows(payload: bytes, *, max_rows: int) -> Iterator[list[str]]:
    """Yield data rows of ``payload`` in file order.

    The header line is skipped, blank lines are ignored. Raises
    :class:`MalformedPayloadError` for undecodable or syntactically broken CSV
    and :class:`LimitExceededError` once more than ``max_rows`` rows are read.
    """

    try:
        text = payload.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise MalformedPayloadError("data.csv is not valid UTF-8") from exc

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    try:
        header = next(reader, None)
        if header is None:
            return
        count = 0
        for row in reader:
            if not row:
                continue
            count += 1
            if count > max_rows:
                raise LimitExceededError(f"data.csv has more than {max_rows} rows")
            yield row
    except csv.Error as exc:
        raise MalformedPayloadError(f"invalid csv at line {reader.line_num}: {exc}") from exc


__all__ = [
    "FIELD_COUNT",
    "MAX_PRICE_MINOR",
    "iter_raw_rows",
    "normalize_row",
    "parse_iso_date",
    "parse_price_minor",
]
