"""
Shared Pydantic schemas used across the application.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from shared.config.constants import (
    Limits,
    OrderItemStatus,
    OrderStatus,
    PaymentMethod,
    TableStatus,
)
from shared.utils.validators import validate_notes, validate_quantity


# =============================================================================
# Common
# =============================================================================


class ErrorResponse(BaseModel):
    """Body of every error response."""

    detail: str
    code: str


class HealthResponse(BaseModel):
    status: str
    database: str


# =============================================================================
# Public Ordering Schemas (QR flow, no authentication)
# =============================================================================


class OrderItemInput(BaseModel):
    """One cart line. The same dish may appear on several lines."""

    dish_id: int = Field(gt=0)
    quantity: int
    notes: str | None = None

    @field_validator("quantity")
    @classmethod
    def _check_quantity(cls, value: int) -> int:
        return validate_quantity(value)

    @field_validator("notes")
    @classmethod
    def _check_notes(cls, value: str | None) -> str | None:
        return validate_notes(value, Limits.MAX_ITEM_NOTES_LENGTH)


class CreateOrderRequest(BaseModel):
    """
    Customer cart submission.

    An empty ``items`` list is accepted here and rejected by the service with
    a 400, like every other business-rule failure.
    """

    items: list[OrderItemInput] = Field(max_length=Limits.MAX_ORDER_LINES)
    customer_notes: str | None = None
    tip_percentage: Decimal | None = Field(
        default=None, ge=Limits.MIN_TIP_PERCENTAGE, le=Limits.MAX_TIP_PERCENTAGE
    )

    @field_validator("customer_notes")
    @classmethod
    def _check_customer_notes(cls, value: str | None) -> str | None:
        return validate_notes(value, Limits.MAX_CUSTOMER_NOTES_LENGTH)


class CreateOrderResponse(BaseModel):
    order_id: int
    order_number: int
    status: OrderStatus
    total: Decimal
    created_at: datetime


class PublicTableInfo(BaseModel):
    id: int
    number: int
    name: str | None = None
    capacity: int
    zone: str | None = None


class PublicTenantInfo(BaseModel):
    name: str
    slug: str


class PublicSettingsInfo(BaseModel):
    vat_rate: Decimal
    tip_enabled: bool
    tip_percentages: list[int]
    currency: str


class ValidateTableResponse(BaseModel):
    """Returned when a customer scans a table QR code."""

    table: PublicTableInfo
    tenant: PublicTenantInfo
    settings: PublicSettingsInfo


# =============================================================================
# Order Output Schemas
# =============================================================================


class OrderItemOutput(BaseModel):
    id: int
    dish_id: int
    dish_name: str
    quantity: int
    unit_price: Decimal
    notes: str | None = None
    status: OrderItemStatus
    prep_sector_id: int | None = None


class StatusHistoryOutput(BaseModel):
    id: int
    order_item_id: int | None = None
    from_status: str | None = None
    to_status: str
    changed_by_id: int | None = None
    changed_at: datetime
    notes: str | None = None


class PublicHistoryEntry(BaseModel):
    from_status: str | None = None
    to_status: str
    changed_at: datetime
    notes: str | None = None


class PublicOrderStatusOutput(BaseModel):
    """Order as the customer sees it: no staff ids."""

    order_number: int
    status: OrderStatus
    customer_notes: str | None = None
    subtotal: Decimal
    vat_amount: Decimal
    tip_amount: Decimal
    total: Decimal
    created_at: datetime
    items: list[OrderItemOutput]
    history: list[PublicHistoryEntry]


class OrderSummaryOutput(BaseModel):
    id: int
    order_number: int
    business_date: date
    table_id: int
    table_number: int | None = None
    status: OrderStatus
    total: Decimal
    item_count: int
    created_at: datetime


class OrderDetailOutput(BaseModel):
    id: int
    order_number: int
    business_date: date
    table_id: int
    table_number: int | None = None
    status: OrderStatus
    customer_notes: str | None = None
    subtotal: Decimal
    vat_amount: Decimal
    tip_amount: Decimal
    total: Decimal
    created_by_id: int | None = None
    closed_by_id: int | None = None
    closed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None
    items: list[OrderItemOutput]
    history: list[StatusHistoryOutput] = Field(default_factory=list)


class UpdateOrderStatusRequest(BaseModel):
    """Manual status override by staff."""

    status: OrderStatus
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def _check_notes(cls, value: str | None) -> str | None:
        return validate_notes(value, Limits.MAX_CUSTOMER_NOTES_LENGTH)


# =============================================================================
# Table Schemas (staff)
# =============================================================================


class TableOutput(BaseModel):
    id: int
    number: int
    name: str | None = None
    status: TableStatus


class ActiveTableOrdersOutput(BaseModel):
    """Open orders of a table, shown before closing it."""

    table: TableOutput
    orders: list[OrderDetailOutput]
    combined_total: Decimal
    order_count: int


class CloseTableRequest(BaseModel):
    payment_method: PaymentMethod


class ClosedOrderOutput(BaseModel):
    id: int
    order_number: int
    total: Decimal


class CloseTableResponse(BaseModel):
    table: TableOutput
    closed_order_count: int
    closed_orders: list[ClosedOrderOutput]
