"""SQLAlchemy models registry for the price store."""

from .prices import IDENTITY_COLUMNS, Base, PriceRecord

__all__ = [
    "Base",
    "IDENTITY_COLUMNS",
    "PriceRecord",
]
