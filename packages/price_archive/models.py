"""Data models for ``price_archive``.

Record shapes flowing through the upload pipeline (canonical rows, rejection
values, persisted rows), the typed export filter, and the response DTO returned
by the upload entry points.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .errors import InputRangeError

# ---------------------------------------------------------------------------
# Archive kinds
# ---------------------------------------------------------------------------


class ArchiveKind(StrEnum):
    ZIP = "zip"
    TAR = "tar"


# ---------------------------------------------------------------------------
# Upload rows
# ---------------------------------------------------------------------------

# Identity of a price fact: ``(created_at, name, category, price_minor)``.
type IdentityKey = tuple[date, str, str, int]


@dataclass(frozen=True, slots=True)
class CanonicalRecord:
    """A validated, normalized upload row.

    ``price_minor`` is the price in minor units (cents). ``external_id`` is
    kept for storage only; two records with equal :attr:`identity_key` are the
    same economic fact regardless of their external ids.
    """

    external_id: str
    name: str
    category: str
    price_minor: int
    created_at: date

    @property
    def identity_key(self) -> IdentityKey:
        return (self.created_at, self.name, self.category, self.price_minor)


class RejectReason(StrEnum):
    FIELD_COUNT = "field_count"
    EMPTY_FIELD = "empty_field"
    INVALID_PRICE = "invalid_price"
    INVALID_DATE = "invalid_date"


@dataclass(frozen=True, slots=True)
class Rejected:
    """A row that failed validation, with the first failing check."""

    reason: RejectReason
    detail: str = ""


@dataclass(frozen=True, slots=True)
class PersistedRecord:
    """A stored price row; ``id`` is the surrogate key assigned by the store."""

    id: int
    name: str
    category: str
    price_minor: int
    created_at: date


# ---------------------------------------------------------------------------
# Export filter
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExportFilter:
    """Inclusive, independently optional bounds for an export query.

    Prices are in minor units. Omitted bounds do not filter their dimension.
    Inverted ranges are rejected on construction so they never reach the store.
    """

    date_from: date | None = None
    date_to: date | None = None
    price_from: int | None = None
    price_to: int | None = None

    def __post_init__(self) -> None:
        if self.date_from is not None and self.date_to is not None:
            if self.date_from > self.date_to:
                raise InputRangeError(
                    f"start date {self.date_from.isoformat()} is after "
                    f"end date {self.date_to.isoformat()}"
                )
        if self.price_from is not None and self.price_to is not None:
            if self.price_from > self.price_to:
                raise InputRangeError("minimum price is greater than maximum price")


# ---------------------------------------------------------------------------
# Upload accounting
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class IngestStats:
    """Internal per-upload tallies, kept separate by cause for debugging."""

    total_rows: int = 0
    rejected_by_reason: Counter[RejectReason] = field(default_factory=Counter)
    in_upload_duplicates: int = 0
    stored_duplicates: int = 0
    inserted: int = 0

    @property
    def rejected(self) -> int:
        return sum(self.rejected_by_reason.values())

    @property
    def duplicates_or_rejected(self) -> int:
        return self.rejected + self.in_upload_duplicates + self.stored_duplicates


class UploadSummary(BaseModel):
    """Response of an upload.

    ``duplicates_count`` combines rejected rows with in-upload and stored
    duplicates. Totals describe the whole store, not just this upload;
    ``total_price`` is reported in major units with two decimals.
    """

    model_config = ConfigDict(frozen=True)

    total_count: int
    duplicates_count: int
    total_items: int
    total_categories: int
    total_price_minor: int = Field(exclude=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_price(self) -> float:
        return round(self.total_price_minor / 100, 2)


__all__ = [
    "ArchiveKind",
    "CanonicalRecord",
    "ExportFilter",
    "IdentityKey",
    "IngestStats",
    "PersistedRecord",
    "RejectReason",
    "Rejected",
    "UploadSummary",
]
