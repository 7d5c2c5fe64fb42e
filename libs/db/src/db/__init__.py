"""db: database library for the price store (SQLAlchemy).

Public exports
--------------
- ``Base`` and ``metadata`` for schema creation
- ORM models in ``db.models.prices`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models.prices import Base, PriceRecord

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "PriceRecord",
]
