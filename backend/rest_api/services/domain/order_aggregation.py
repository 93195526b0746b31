"""
Order status derived from item statuses.

Run after every item transition, in the same transaction, so the order
status a console or customer reads always matches its items.
"""

from datetime import datetime
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.repositories import OrderHistoryRepository, OrderItemRepository, OrderRepository
from shared.config.constants import (
    CLOSED_ORDER_STATUSES,
    ErrorMessages,
    HistoryNotes,
    OrderItemStatus,
    OrderStatus,
)
from shared.config.logging import orders_logger as logger
from shared.utils.exceptions import ConflictError, NotFoundError

_READY_OR_SERVED = frozenset({OrderItemStatus.READY, OrderItemStatus.SERVED})


def derive_order_status(current: OrderStatus, item_statuses: Iterable[str]) -> OrderStatus:
    """
    Compute the order status implied by its items.

    Rules, first match wins:
        all SERVED          -> DELIVERED
        all READY or SERVED -> READY
        any IN_PROGRESS     -> IN_PROGRESS
        all PENDING         -> CONFIRMED
        otherwise           -> unchanged

    Closed orders (PAID, CANCELLED) and orders without items are returned
    unchanged.
    """
    current = OrderStatus(current)
    if current in CLOSED_ORDER_STATUSES:
        return current

    statuses = [OrderItemStatus(status) for status in item_statuses]
    if not statuses:
        return current

    if all(status == OrderItemStatus.SERVED for status in statuses):
        return OrderStatus.DELIVERED
    if all(status in _READY_OR_SERVED for status in statuses):
        return OrderStatus.READY
    if any(status == OrderItemStatus.IN_PROGRESS for status in statuses):
        return OrderStatus.IN_PROGRESS
    if all(status == OrderItemStatus.PENDING for status in statuses):
        return OrderStatus.CONFIRMED
    return current


class OrderStatusAggregator:
    """
    Applies ``derive_order_status`` to a persisted order.

    Usage:
        aggregator = OrderStatusAggregator(db, tenant_id)
        new_status = await aggregator.apply(order_id, changed_by_id=user_id, now=now)
    """

    def __init__(self, db: AsyncSession, tenant_id: int):
        self._orders = OrderRepository(db, tenant_id)
        self._items = OrderItemRepository(db, tenant_id)
        self._history = OrderHistoryRepository(db, tenant_id)

    async def apply(self, order_id: int, *, changed_by_id: int | None, now: datetime) -> OrderStatus:
        """
        Re-derive the order status from its items and persist it if it changed.

        The order row is locked before the items are read. Callers that
        changed items should already hold that lock.

        Returns:
            The order status after aggregation.

        Raises:
            ConflictError: The order status changed under us.
        """
        order = await self._orders.lock(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)

        current = OrderStatus(order.status)
        target = derive_order_status(current, await self._items.statuses_for_order(order_id))
        if target == current:
            return current

        if not await self._orders.transition(order_id, current.value, target, now):
            raise ConflictError(
                ErrorMessages.CONCURRENT_UPDATE.format(entity="order"), order_id=order_id
            )

        self._history.record(
            order_id,
            target.value,
            from_status=current.value,
            changed_by_id=changed_by_id,
            changed_at=now,
            notes=HistoryNotes.AGGREGATED,
        )
        logger.info(
            "Order status derived from items",
            order_id=order_id,
            from_status=current.value,
            to_status=target.value,
        )
        return target
