"""Public interface for the ``price_archive`` package.

This module exposes the package's pipeline functions, models and errors as the
stable import surface. There is no runtime logic here, only re-exports.
"""

from .api import (
    collect_candidates,
    export_archive,
    ingest_archive,
    parse_export_filter,
)
from .archives import pack_payload, unwrap_payload
from .duplicates import UploadDeduplicator, Verdict
from .errors import (
    ArchiveFormatError,
    InputRangeError,
    InvalidRequestError,
    LimitExceededError,
    MalformedPayloadError,
    PayloadNotFoundError,
    PersistenceError,
    PriceArchiveError,
)
from .export import build_export_archive, serialize_records
from .models import (
    ArchiveKind,
    CanonicalRecord,
    ExportFilter,
    IngestStats,
    PersistedRecord,
    Rejected,
    RejectReason,
    UploadSummary,
)
from .normalizers import normalize_row
from .persistence import CommitResult, commit_records, query_records

__all__ = [
    # Pipelines
    "collect_candidates",
    "export_archive",
    "ingest_archive",
    "parse_export_filter",
    # Components
    "build_export_archive",
    "commit_records",
    "normalize_row",
    "pack_payload",
    "query_records",
    "serialize_records",
    "unwrap_payload",
    "UploadDeduplicator",
    "Verdict",
    # Models / types
    "ArchiveKind",
    "CanonicalRecord",
    "CommitResult",
    "ExportFilter",
    "IngestStats",
    "PersistedRecord",
    "Rejected",
    "RejectReason",
    "UploadSummary",
    # Errors
    "PriceArchiveError",
    "ArchiveFormatError",
    "PayloadNotFoundError",
    "MalformedPayloadError",
    "LimitExceededError",
    "PersistenceError",
    "InputRangeError",
    "InvalidRequestError",
]
