"""
Order Models: Order, OrderItem, OrderStatusHistory.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderItemStatus, OrderStatus
from shared.utils.clock import utcnow

from .base import BigIntPK, Base, Money, TimestampMixin

if TYPE_CHECKING:
    from .table import Table
    from .catalog import Dish
    from .sector import PrepSector
    from .billing import Payment


class Order(TimestampMixin, Base):
    """
    A customer order placed from a table.

    ``order_number`` restarts at 1 every tenant-local calendar day
    (``business_date``). Monetary fields are computed once at creation and
    always satisfy total == subtotal + vat_amount + tip_amount.
    """

    # "order" is a reserved SQL keyword
    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    business_date: Mapped[date] = mapped_column(Date, nullable=False)
    order_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, default=OrderStatus.PENDING.value, nullable=False, index=True
    )
    customer_notes: Mapped[Optional[str]] = mapped_column(Text)

    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    tip_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total: Mapped[Decimal] = mapped_column(Money, nullable=False)

    created_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    closed_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        # Order number allocation relies on this to detect a lost race
        UniqueConstraint(
            "tenant_id", "business_date", "order_number", name="uq_order_tenant_day_number"
        ),
        Index("ix_order_tenant_status", "tenant_id", "status"),
        Index("ix_order_table_status", "table_id", "status"),
    )

    # Relationships
    table: Mapped["Table"] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    history: Mapped[list["OrderStatusHistory"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by=lambda: [OrderStatusHistory.changed_at, OrderStatusHistory.id],
    )
    payment: Mapped[Optional["Payment"]] = relationship(back_populates="order", uselist=False)

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, order_number={self.order_number}, "
            f"status='{self.status}', table_id={self.table_id})>"
        )


class OrderItem(TimestampMixin, Base):
    """
    A single line of an order.

    ``unit_price`` and ``prep_sector_id`` are snapshots taken at creation;
    ``status`` moves independently from the parent order's status.
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    dish_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("dish.id"), nullable=False, index=True
    )
    prep_sector_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("prep_sector.id"), index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        Text, default=OrderItemStatus.PENDING.value, nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="chk_order_item_price_non_negative"),
        # Prep console query: sector + status
        Index("ix_order_item_sector_status", "prep_sector_id", "status"),
    )

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")
    dish: Mapped["Dish"] = relationship()
    prep_sector: Mapped[Optional["PrepSector"]] = relationship()

    def __repr__(self) -> str:
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, status='{self.status}')>"


class OrderStatusHistory(Base):
    """
    Append-only audit log of order and item status changes.

    Item-level rows carry ``order_item_id``; order-level rows leave it null.
    ``changed_by_id`` is null for customer-initiated events.
    """

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    order_item_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("order_item.id"), index=True
    )
    from_status: Mapped[Optional[str]] = mapped_column(Text)
    to_status: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    order: Mapped["Order"] = relationship(back_populates="history")

    def __repr__(self) -> str:
        return (
            f"<OrderStatusHistory(order_id={self.order_id}, item_id={self.order_item_id}, "
            f"{self.from_status} -> {self.to_status})>"
        )


@event.listens_for(OrderStatusHistory, "before_update")
def _history_is_append_only(mapper, connection, target) -> None:
    raise RuntimeError("OrderStatusHistory rows are append-only")
