"""
Prep console router - /api/prep/*
Kitchen and bar staff work their sector's tickets here.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.routers._common import get_clock, get_permission_context
from rest_api.services.domain import ItemStatusService, PrepConsoleService
from rest_api.services.permissions import PermissionContext
from shared.infrastructure.db import get_db
from shared.utils.clock import Clock
from shared.utils.kitchen_schemas import (
    BulkItemStatusRequest,
    BulkItemStatusResponse,
    ItemStatusOutput,
    SectorStatsOutput,
    SectorTicketsResponse,
    TicketActionResponse,
    UpdateItemStatusRequest,
)


router = APIRouter(prefix="/api/prep", tags=["prep"])


# =============================================================================
# Console queries
# =============================================================================


@router.get("/sectors/{sector_code}/tickets", response_model=SectorTicketsResponse)
async def list_sector_tickets(
    sector_code: str = Path(min_length=1, max_length=20),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> SectorTicketsResponse:
    """
    Kanban columns (pending, in progress, ready) for a sector.

    Requires prep:view and access to the sector.
    """
    return await PrepConsoleService(db, clock=clock).list_sector_tickets(perms, sector_code)


@router.get("/sectors/{sector_code}/stats", response_model=SectorStatsOutput)
async def get_sector_stats(
    sector_code: str = Path(min_length=1, max_length=20),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> SectorStatsOutput:
    """Active orders, item counts and average ticket time for a sector."""
    return await PrepConsoleService(db, clock=clock).get_sector_stats(perms, sector_code)


# =============================================================================
# Item transitions
# =============================================================================


@router.patch("/items/{item_id}/status", response_model=ItemStatusOutput)
async def update_item_status(
    body: UpdateItemStatusRequest,
    item_id: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> ItemStatusOutput:
    """
    Move one item to a new status.

    Cancelling requires ADMIN or SUPER_ADMIN.
    """
    return await ItemStatusService(db, clock=clock).update_item_status(perms, item_id, body.status)


@router.post("/items/bulk-status", response_model=BulkItemStatusResponse)
async def bulk_update_item_status(
    body: BulkItemStatusRequest,
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> BulkItemStatusResponse:
    """
    Move several items one step forward. All or nothing: if any item is
    not in the required status, nothing changes.
    """
    service = ItemStatusService(db, clock=clock)
    return await service.bulk_update_item_status(perms, body.item_ids, body.status)


@router.post("/sectors/{sector_code}/orders/{order_id}/ready", response_model=TicketActionResponse)
async def mark_ticket_ready(
    sector_code: str = Path(min_length=1, max_length=20),
    order_id: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> TicketActionResponse:
    """Mark the order's in-progress items of this sector as ready."""
    return await ItemStatusService(db, clock=clock).mark_ticket_ready(perms, order_id, sector_code)


@router.post("/sectors/{sector_code}/orders/{order_id}/clear", response_model=TicketActionResponse)
async def clear_ticket(
    sector_code: str = Path(min_length=1, max_length=20),
    order_id: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> TicketActionResponse:
    """Mark the order's ready items of this sector as served."""
    return await ItemStatusService(db, clock=clock).clear_ticket(perms, order_id, sector_code)
