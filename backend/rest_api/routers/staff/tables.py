"""
Staff tables router - /api/tables/*
Pre-closure summary and table closure.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.routers._common import get_clock, get_permission_context
from rest_api.services.domain import TableClosureService
from rest_api.services.permissions import PermissionContext
from shared.infrastructure.db import get_db
from shared.utils.clock import Clock
from shared.utils.schemas import ActiveTableOrdersOutput, CloseTableRequest, CloseTableResponse


router = APIRouter(prefix="/api/tables", tags=["tables"])


@router.get("/{table_id}/active-orders", response_model=ActiveTableOrdersOutput)
async def get_active_orders_for_table(
    table_id: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
) -> ActiveTableOrdersOutput:
    """Open orders of a table and their combined total. Requires tables:view."""
    return await TableClosureService(db).get_active_orders_for_table(perms, table_id)


@router.post("/{table_id}/close", response_model=CloseTableResponse)
async def close_table(
    body: CloseTableRequest,
    table_id: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    perms: PermissionContext = Depends(get_permission_context),
    clock: Clock = Depends(get_clock),
) -> CloseTableResponse:
    """
    Pay all open orders of an occupied table and send it to cleaning.

    Requires payments:process. Closing an already closed table returns 412.
    """
    service = TableClosureService(db, clock=clock)
    return await service.close_table(perms, table_id, body.payment_method)
