"""
Tenant Models: Tenant, TenantSettings.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import SettingsDefaults

from .base import BigIntPK, Base, JSONType, Percentage, TimestampMixin

if TYPE_CHECKING:
    from .table import Table
    from .sector import PrepSector


class Tenant(TimestampMixin, Base):
    """
    A restaurant account: the isolation boundary for all other data.
    Customers reach it by slug from the QR link.
    """

    __tablename__ = "tenant"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    settings: Mapped[Optional["TenantSettings"]] = relationship(
        back_populates="tenant", uselist=False
    )
    tables: Mapped[list["Table"]] = relationship(back_populates="tenant")
    prep_sectors: Mapped[list["PrepSector"]] = relationship(back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug='{self.slug}')>"


class TenantSettings(TimestampMixin, Base):
    """
    Per-tenant billing and locale settings. At most one row per tenant;
    when missing, SettingsDefaults apply.
    """

    __tablename__ = "tenant_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tenant.id"), unique=True, nullable=False
    )
    vat_rate: Mapped[Decimal] = mapped_column(
        Percentage, default=Decimal(SettingsDefaults.VAT_RATE), nullable=False
    )
    reduced_vat_rate: Mapped[Decimal] = mapped_column(
        Percentage, default=Decimal(SettingsDefaults.REDUCED_VAT_RATE), nullable=False
    )
    tip_enabled: Mapped[bool] = mapped_column(
        Boolean, default=SettingsDefaults.TIP_ENABLED, nullable=False
    )
    tip_percentages: Mapped[list[int]] = mapped_column(
        JSONType, default=lambda: list(SettingsDefaults.TIP_PERCENTAGES), nullable=False
    )
    currency: Mapped[str] = mapped_column(Text, default=SettingsDefaults.CURRENCY, nullable=False)
    timezone: Mapped[str] = mapped_column(Text, default=SettingsDefaults.TIMEZONE, nullable=False)
    default_language: Mapped[str] = mapped_column(
        Text, default=SettingsDefaults.LANGUAGE, nullable=False
    )

    tenant: Mapped["Tenant"] = relationship(back_populates="settings")
