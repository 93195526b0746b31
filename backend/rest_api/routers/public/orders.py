"""
Public ordering router - /api/public/{tenant_slug}/tables/{qr_code}/*
Customers reach these from the table QR code; no authentication.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.routers._common import get_clock, get_order_rate_limiter
from rest_api.services.domain import OrderService
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import KeyedRateLimiter, limiter
from shared.utils.clock import Clock
from shared.utils.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    PublicOrderStatusOutput,
    ValidateTableResponse,
)


router = APIRouter(prefix="/api/public/{tenant_slug}/tables/{qr_code}", tags=["public-orders"])

QrCode = Annotated[
    str, Path(min_length=1, max_length=64, description="Opaque table code from the QR link")
]


@router.get("", response_model=ValidateTableResponse)
@limiter.limit(settings.public_rate_limit)
async def validate_table(
    request: Request,
    tenant_slug: str,
    qr_code: QrCode,
    db: AsyncSession = Depends(get_db),
) -> ValidateTableResponse:
    """
    Check a scanned QR code.

    Returns the table, the restaurant name and the billing settings the
    ordering page needs (VAT rate, tip options, currency).
    """
    return await OrderService(db).validate_table(tenant_slug, qr_code)


@router.post("/orders", response_model=CreateOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    tenant_slug: str,
    qr_code: QrCode,
    body: CreateOrderRequest,
    db: AsyncSession = Depends(get_db),
    rate_limiter: KeyedRateLimiter = Depends(get_order_rate_limiter),
    clock: Clock = Depends(get_clock),
) -> CreateOrderResponse:
    """
    Place an order from the customer's cart.

    Prices, totals and the order number are computed server-side.
    Limited per table; over the limit returns 429 with Retry-After.
    """
    service = OrderService(db, clock=clock, rate_limiter=rate_limiter)
    return await service.create_order(tenant_slug, qr_code, body)


@router.get("/orders/{order_number}", response_model=PublicOrderStatusOutput)
@limiter.limit(settings.public_rate_limit)
async def get_order_status(
    request: Request,
    tenant_slug: str,
    qr_code: QrCode,
    order_number: int = Path(gt=0),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> PublicOrderStatusOutput:
    """Status of today's order for this table, with its latest history entries."""
    return await OrderService(db, clock=clock).get_order_status(tenant_slug, qr_code, order_number)
