"""In-upload duplicate tracking.

Public surface:
- ``Verdict``: outcome of offering a record to the deduplicator.
- ``UploadDeduplicator``: remembers identity keys seen so far in one upload
  and keeps the first occurrence of each, in file order.

Identity is ``(created_at, name, category, price_minor)``; the uploader's
external id is not part of it. This set only saves work within a
single upload: the store's unique constraint remains the authority across
uploads (see :func:`price_archive.persistence.commit_records`).
"""

from __future__ import annotations

from enum import StrEnum

from .models import CanonicalRecord, IdentityKey


class Verdict(StrEnum):
    NOVEL = "novel"
    DUPLICATE = "duplicate"


class UploadDeduplicator:
    """Sequential first-occurrence filter for one upload.

    Not thread-safe; records must be offered in file order because the first
    occurrence of a key is the one retained.
    """

    __slots__ = ("_seen", "_novel", "duplicates")

    def __init__(self) -> None:
        self._seen: set[IdentityKey] = set()
        self._novel: list[CanonicalRecord] = []
        self.duplicates = 0

    def accept(self, record: CanonicalRecord) -> Verdict:
        key = record.identity_key
        if key in self._seen:
            self.duplicates += 1
            return Verdict.DUPLICATE
        self._seen.add(key)
        self._novel.append(record)
        return Verdict.NOVEL

    @property
    def novel(self) -> list[CanonicalRecord]:
        """Retained records in first-occurrence order."""
        return list(self._novel)

    def __len__(self) -> int:
        return len(self._novel)


__all__ = [
    "UploadDeduplicator",
    "Verdict",
]
