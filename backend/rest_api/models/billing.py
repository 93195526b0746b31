"""
Billing Model: Payment.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import PaymentStatus

from .base import BigIntPK, Base, JSONType, Money, TimestampMixin

if TYPE_CHECKING:
    from .order import Order


class Payment(TimestampMixin, Base):
    """
    Payment settling one order. At most one per order (unique ``order_id``).
    """

    __tablename__ = "payment"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), nullable=False, index=True
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), unique=True, nullable=False
    )
    method: Mapped[str] = mapped_column(Text, nullable=False)  # CASH, CARD, BIZUM
    status: Mapped[str] = mapped_column(
        Text, default=PaymentStatus.PENDING.value, nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gateway_reference: Mapped[Optional[str]] = mapped_column(Text)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    order: Mapped["Order"] = relationship(back_populates="payment")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, order_id={self.order_id}, status='{self.status}')>"
