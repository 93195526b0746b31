from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from shared.config.constants import Limits, OrderItemStatus, OrderStatus


class UpdateItemStatusRequest(BaseModel):
    """Request to move a single item to a new status."""
    status: OrderItemStatus


class ItemStatusOutput(BaseModel):
    """Item after a transition, with the (possibly re-derived) order status."""
    id: int
    order_id: int
    status: OrderItemStatus
    order_status: OrderStatus


class BulkItemStatusRequest(BaseModel):
    """Request to move several items forward together."""
    item_ids: List[int] = Field(min_length=1, max_length=Limits.MAX_BULK_ITEMS)
    status: OrderItemStatus


class BulkItemStatusResponse(BaseModel):
    updated_count: int


class TicketActionResponse(BaseModel):
    """Result of a per-ticket console action (mark ready, clear)."""
    order_id: int
    updated_count: int
    order_status: OrderStatus


class ConsoleItemOutput(BaseModel):
    """Item line on a console ticket."""
    id: int
    dish_id: int
    dish_name: str
    quantity: int
    notes: str | None = None
    allergens: List[str] = Field(default_factory=list)


class ConsoleTicketOutput(BaseModel):
    """One order's items in one console column."""
    order_id: int
    order_number: int
    table_number: int
    table_name: str | None = None
    customer_notes: str | None = None
    created_at: datetime
    elapsed_seconds: int
    items: List[ConsoleItemOutput]


class SectorTicketsResponse(BaseModel):
    """Kanban columns for a prep sector, oldest ticket first in each."""
    sector_id: int
    sector_code: str
    sector_name: str
    pending: List[ConsoleTicketOutput]
    in_progress: List[ConsoleTicketOutput]
    ready: List[ConsoleTicketOutput]


class ItemCountsOutput(BaseModel):
    pending: int = 0
    in_progress: int = 0
    ready: int = 0


class SectorStatsOutput(BaseModel):
    """Console header statistics."""
    sector_id: int
    sector_code: str
    sector_name: str
    active_orders: int
    avg_ticket_time: int | None = None  # seconds, items served in the last 24 h
    item_counts: ItemCountsOutput
    completed_last_24h: int
