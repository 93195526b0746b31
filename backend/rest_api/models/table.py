"""
Table Model: physical tables customers order from via QR code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import TableStatus

from .base import BigIntPK, Base, TimestampMixin

if TYPE_CHECKING:
    from .tenant import Tenant
    from .order import Order


class Table(TimestampMixin, Base):
    """
    Physical table of a tenant, identified externally by an opaque QR code.

    Status lifecycle: AVAILABLE -> OCCUPIED on first order -> CLEANING on
    closure -> AVAILABLE again by staff.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(Text)  # "Terrace 3"
    qr_code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    zone: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        Text, default=TableStatus.AVAILABLE.value, nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_table_tenant_number"),
        Index("ix_table_tenant_status", "tenant_id", "status"),
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship(back_populates="tables")
    orders: Mapped[list["Order"]] = relationship(back_populates="table")

    def __repr__(self) -> str:
        return f"<Table(id={self.id}, number={self.number}, status='{self.status}')>"
