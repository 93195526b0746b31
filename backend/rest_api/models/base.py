"""
Base class and shared column helpers for all SQLAlchemy ORM models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer, Numeric, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.utils.clock import utcnow

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB, "postgresql")

# Currency amounts: two decimal places, never floats
Money = Numeric(10, 2, asdecimal=True)

# Percentages such as VAT rates
Percentage = Numeric(5, 2, asdecimal=True)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TimestampMixin:
    """
    Creation and last-update timestamps.

    Both are set from the application clock so they keep sub-second precision
    on every backend; ``created_at`` also has a server default for rows
    inserted outside the ORM.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        id_val = getattr(self, "id", None)
        return f"<{class_name}(id={id_val})>"
