"""
Daily order number allocation.

Numbers restart at 1 every tenant-local calendar day. Allocation reads the
day's maximum and adds one inside the transaction that inserts the order,
after locking the tenant row; the unique constraint on
(tenant_id, business_date, order_number) catches any race that slips
through, and the caller retries the whole attempt.
"""

import asyncio
from datetime import date, datetime
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.repositories import OrderRepository, TenantRepository
from shared.config.constants import ErrorMessages
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.clock import local_date
from shared.utils.exceptions import ConflictError

logger = get_logger(__name__)

T = TypeVar("T")

ORDER_NUMBER_CONSTRAINT = "uq_order_tenant_day_number"


def business_date_for(now: datetime, timezone_name: str) -> date:
    """The tenant's calendar date at ``now``."""
    return local_date(now, timezone_name)


def is_order_number_collision(exc: IntegrityError) -> bool:
    """True if the violation is the daily order number uniqueness constraint."""
    message = str(exc.orig)
    # PostgreSQL reports the constraint name, SQLite the column list
    return ORDER_NUMBER_CONSTRAINT in message or "customer_order.order_number" in message


class OrderSequenceAllocator:
    """Allocates the next order number for one tenant."""

    def __init__(self, db: AsyncSession, tenant_id: int):
        self._db = db
        self._tenant_id = tenant_id

    async def next_number(self, business_date: date) -> int:
        """
        Lock the tenant and return max(order_number) + 1 for the day.

        Must run in the transaction that inserts the order; the lock is held
        until that transaction ends.
        """
        await TenantRepository(self._db).lock(self._tenant_id)
        current = await OrderRepository(self._db, self._tenant_id).max_order_number(business_date)
        return current + 1


async def run_with_order_number_retry(
    db: AsyncSession,
    attempt: Callable[[], Awaitable[T]],
    *,
    max_retries: int | None = None,
    backoff: float | None = None,
    **log_context,
) -> T:
    """
    Run an allocate-and-insert attempt, retrying on order number collisions.

    Each failed attempt is rolled back completely before the next one reads
    the sequence again.

    Raises:
        ConflictError: All attempts collided.
    """
    max_retries = max_retries or settings.order_number_max_retries
    backoff = settings.order_retry_backoff if backoff is None else backoff

    for attempt_number in range(1, max_retries + 1):
        try:
            return await attempt()
        except IntegrityError as exc:
            await db.rollback()
            if not is_order_number_collision(exc):
                raise
            logger.warning(
                "Order number collision, retrying",
                attempt=attempt_number,
                max_retries=max_retries,
                **log_context,
            )
            await asyncio.sleep(backoff * attempt_number)

    raise ConflictError(ErrorMessages.ORDER_NUMBER_CONFLICT, **log_context)
