"""
Staff orders router - /api/orders/*
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.repositories import OrderFilters
from rest_api.routers._common import Pagination, get_clock, get_pagination, get_permission_context
from rest_api.services.domain import OrderService
from rest_api.services.permissions import PermissionContext
from shared.config.constants import OrderStatus
from shared.infrastructure.db import get_db
from shared.utils.clock import Clock
from shared.utils.schemas import OrderDetailOutput, OrderSummaryOutput, UpdateOrderStatusRequest


router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("", response_model=list[OrderSummaryOutput])
async def list_orders(
    status: OrderStatus | None = Query(default=None),
    table_id: int | None = Query(default=None, gt=0),
    pagination: Pagination = Depends(get_pagination),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
) -> list[OrderSummaryOutput]:
    """Tenant orders, newest first. Requires orders:view."""
    filters = OrderFilters(
        limit=pagination.limit,
        offset=pagination.offset,
        status=status,
        table_id=table_id,
    )
    return await OrderService(db).list_orders(perms, filters)


@router.get("/{order_id}", response_model=OrderDetailOutput)
async def get_order(
    order_id: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
) -> OrderDetailOutput:
    """Order with items and full status history. Requires orders:view."""
    return await OrderService(db).get_order(perms, order_id)


@router.patch("/{order_id}/status", response_model=OrderDetailOutput)
async def update_order_status(
    body: UpdateOrderStatusRequest,
    order_id: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> OrderDetailOutput:
    """
    Override the order status by hand. Requires orders:update.
    Paid and cancelled orders cannot be changed.
    """
    return await OrderService(db, clock=clock).update_order_status(perms, order_id, body)
