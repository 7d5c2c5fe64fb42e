"""Exception hierarchy for ``price_archive``.

Row-level problems are not exceptions: the normalizer returns
:class:`~price_archive.models.Rejected` values and the pipeline tallies them.
Everything here aborts the whole request.
"""

from __future__ import annotations


class PriceArchiveError(Exception):
    """Base exception for all price_archive failures."""


class ArchiveFormatError(PriceArchiveError):
    """Raised when the upload cannot be read as the declared archive kind."""


class PayloadNotFoundError(PriceArchiveError):
    """Raised when the archive has no ``data.csv`` entry."""


class MalformedPayloadError(PriceArchiveError):
    """Raised when ``data.csv`` is not decodable UTF-8 CSV."""


class LimitExceededError(PriceArchiveError):
    """Raised when an upload exceeds a configured size or row ceiling."""


class PersistenceError(PriceArchiveError):
    """Raised when the unit of work fails; nothing was committed."""


class InputRangeError(PriceArchiveError):
    """Raised for malformed or inverted export bounds."""


class InvalidRequestError(PriceArchiveError):
    """Raised for an HTTP request the service cannot interpret."""


__all__ = [
    "PriceArchiveError",
    "ArchiveFormatError",
    "PayloadNotFoundError",
    "MalformedPayloadError",
    "LimitExceededError",
    "PersistenceError",
    "InputRangeError",
    "InvalidRequestError",
]
