"""
Catalog Models: Category, Dish.
Read-only inputs to order creation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BigIntPK, Base, JSONType, Money, TimestampMixin

if TYPE_CHECKING:
    from .sector import PrepSector


class Category(TimestampMixin, Base):
    """
    Menu category. Routes every dish in it to one prep sector.
    """

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    prep_sector_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("prep_sector.id"), index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    prep_sector: Mapped[Optional["PrepSector"]] = relationship(back_populates="categories")
    dishes: Mapped[list["Dish"]] = relationship(back_populates="category")


class Dish(TimestampMixin, Base):
    """
    A dish on the menu. ``price`` is copied onto each order item at
    creation, so later price edits never touch existing orders.
    """

    __tablename__ = "dish"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("category.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_in_stock: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allergens: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)

    __table_args__ = (
        CheckConstraint("price >= 0", name="chk_dish_price_non_negative"),
        Index("ix_dish_tenant_orderable", "tenant_id", "is_available", "is_in_stock"),
    )

    # Relationships
    category: Mapped["Category"] = relationship(back_populates="dishes")

    def __repr__(self) -> str:
        return f"<Dish(id={self.id}, name='{self.name}', price={self.price})>"
