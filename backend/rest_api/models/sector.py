"""
Prep Sector Model: the stations (kitchen, bar) order items are routed to.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BigIntPK, Base, TimestampMixin

if TYPE_CHECKING:
    from .tenant import Tenant
    from .catalog import Category


class PrepSector(TimestampMixin, Base):
    """
    A preparation station. ``code`` is upper-case and unique per tenant
    (KITCHEN, BAR, ...); consoles address sectors by code.
    """

    __tablename__ = "prep_sector"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_prep_sector_tenant_code"),
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship(back_populates="prep_sectors")
    categories: Mapped[list["Category"]] = relationship(back_populates="prep_sector")

    def __repr__(self) -> str:
        return f"<PrepSector(id={self.id}, code='{self.code}', tenant_id={self.tenant_id})>"
