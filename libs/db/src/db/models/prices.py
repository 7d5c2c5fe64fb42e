from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Identity key for cross-upload deduplication. Conditional inserts target
# exactly these columns.
IDENTITY_COLUMNS = ("created_at", "name", "category", "price_minor")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: prices
# ---------------------------


class PriceRecord(Base):
    __tablename__ = "prices"

    # SQLite only autoincrements INTEGER PRIMARY KEY (rowid alias).
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    # Identifier supplied by the uploader. Stored for reference only; it is not
    # part of the identity key and never becomes the surrogate ``id``.
    external_id: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[date] = mapped_column(Date, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    # Price in minor units (cents).
    price_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    inserted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(*IDENTITY_COLUMNS, name="uq_prices_identity"),
        CheckConstraint("price_minor > 0", name="ck_prices_price_positive"),
        Index("ix_prices_created_at_id", "created_at", "id"),
    )


__all__ = [
    "Base",
    "IDENTITY_COLUMNS",
    "PriceRecord",
]
