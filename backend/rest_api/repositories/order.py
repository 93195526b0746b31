"""
Order Repositories - Data access for orders, order items and status history.
Eager loading is explicit: async sessions cannot lazy-load relationships.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Sequence

from sqlalchemy import ColumnElement, Row, and_, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rest_api.models import Dish, Order, OrderItem, OrderStatusHistory, Table
from shared.config.constants import (
    CLOSED_ORDER_STATUSES,
    CONSOLE_ITEM_STATUSES,
    OrderItemStatus,
    OrderStatus,
)
from .base import RepositoryFilters, TenantScopedRepository

_CLOSED = [status.value for status in CLOSED_ORDER_STATUSES]


@dataclass
class OrderFilters(RepositoryFilters):
    """Filters specific to orders."""

    status: OrderStatus | None = None
    table_id: int | None = None


class OrderRepository(TenantScopedRepository[Order]):
    """
    Repository for Order entities.

    Detail reads load:
    - items -> dish
    - history
    - table
    """

    @property
    def model(self) -> type[Order]:
        return Order

    @staticmethod
    def detail_options() -> list[Any]:
        return [
            selectinload(Order.items).selectinload(OrderItem.dish),
            selectinload(Order.history),
            selectinload(Order.table),
        ]

    async def max_order_number(self, business_date: date) -> int:
        """Highest order number used by this tenant on the given day (0 if none)."""
        query = select(func.max(Order.order_number)).where(
            self._scope(), Order.business_date == business_date
        )
        return await self._db.scalar(query) or 0

    async def find_detail(self, order_id: int) -> Order | None:
        return await self.refresh(order_id, *self.detail_options())

    async def find_by_number(
        self, table_id: int, business_date: date, order_number: int
    ) -> Order | None:
        """A table's order by its daily number."""
        query = self.select(
            Order.table_id == table_id,
            Order.business_date == business_date,
            Order.order_number == order_number,
        ).options(selectinload(Order.items).selectinload(OrderItem.dish))
        return await self._db.scalar(query)

    async def find_open_by_number_before(
        self, table_id: int, business_date: date, order_number: int
    ) -> Order | None:
        """Latest still-open order with this number from a day before ``business_date``."""
        query = (
            self.select(
                Order.table_id == table_id,
                Order.business_date < business_date,
                Order.order_number == order_number,
                Order.status.not_in(_CLOSED),
            )
            .options(selectinload(Order.items).selectinload(OrderItem.dish))
            .order_by(Order.business_date.desc())
            .limit(1)
        )
        return await self._db.scalar(query)

    async def find_all(self, filters: OrderFilters) -> Sequence[Order]:
        """Newest first, with items and table loaded."""
        query = self.select().options(
            selectinload(Order.items).selectinload(OrderItem.dish),
            selectinload(Order.table),
        )
        if filters.status:
            query = query.where(Order.status == filters.status.value)
        if filters.table_id:
            query = query.where(Order.table_id == filters.table_id)

        query = (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        result = await self._db.execute(query)
        return result.scalars().unique().all()

    async def find_open_for_table(self, table_id: int, *, lock: bool = False) -> Sequence[Order]:
        """Orders of a table that are neither paid nor cancelled, oldest first."""
        query = (
            self.select(Order.table_id == table_id, Order.status.not_in(_CLOSED))
            .options(selectinload(Order.items).selectinload(OrderItem.dish))
            .order_by(Order.created_at, Order.id)
        )
        if lock:
            query = query.with_for_update()
        result = await self._db.execute(query)
        return result.scalars().unique().all()

    async def lock(self, order_id: int) -> Order | None:
        """
        SELECT ... FOR UPDATE on one order, overwriting stale session state.

        Item writers take this before touching the order's items, so the
        status derived from them is computed by one transaction at a time.
        """
        query = (
            self.select(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self._db.scalar(query)

    async def lock_many(self, order_ids: Sequence[int]) -> Sequence[Order]:
        """Lock several orders in id order, so concurrent writers cannot deadlock."""
        query = (
            self.select(Order.id.in_(order_ids))
            .order_by(Order.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(query)
        return result.scalars().all()

    async def transition(
        self,
        order_id: int,
        from_status: str,
        to_status: OrderStatus,
        now: datetime,
        **values: Any,
    ) -> bool:
        """
        Conditional status change: only applies while the order still has
        ``from_status``. Returns True when the row was updated.
        """
        affected = await self.update_where(
            Order.id == order_id,
            Order.status == from_status,
            status=to_status.value,
            updated_at=now,
            **values,
        )
        return affected == 1


class OrderItemRepository(TenantScopedRepository[OrderItem]):
    """
    Repository for OrderItem entities.

    Items are matched on their own tenant and on the tenant of their parent
    order, so an item attached to a foreign order is never reachable.
    """

    @property
    def model(self) -> type[OrderItem]:
        return OrderItem

    def _scope(self) -> ColumnElement[bool]:
        tenant_orders = select(Order.id).where(Order.tenant_id == self.tenant_id)
        return and_(
            OrderItem.tenant_id == self.tenant_id,
            OrderItem.order_id.in_(tenant_orders),
        )

    async def find_with_relations(self, item_id: int) -> OrderItem | None:
        """Fresh read of an item with its dish and prep sector."""
        return await self.refresh(
            item_id,
            selectinload(OrderItem.dish),
            selectinload(OrderItem.prep_sector),
        )

    async def find_many_with_sector(self, item_ids: Sequence[int]) -> Sequence[OrderItem]:
        query = (
            self.select(OrderItem.id.in_(item_ids))
            .options(selectinload(OrderItem.prep_sector))
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(query)
        return result.scalars().unique().all()

    async def find_for_ticket(
        self, order_id: int, sector_id: int, status: OrderItemStatus
    ) -> Sequence[OrderItem]:
        """Items of one order routed to a sector, in the given status."""
        query = self.select(
            OrderItem.order_id == order_id,
            OrderItem.prep_sector_id == sector_id,
            OrderItem.status == status.value,
        ).order_by(OrderItem.id)
        result = await self._db.execute(query)
        return result.scalars().all()

    async def statuses_for_order(self, order_id: int) -> list[str]:
        """Current statuses of every item in the order."""
        query = select(OrderItem.status).where(self._scope(), OrderItem.order_id == order_id)
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def transition(
        self,
        item_id: int,
        from_status: str,
        to_status: OrderItemStatus,
        now: datetime,
    ) -> bool:
        """Compare-and-set on a single item. Returns True when exactly one row changed."""
        affected = await self.update_where(
            OrderItem.id == item_id,
            OrderItem.status == from_status,
            status=to_status.value,
            updated_at=now,
        )
        return affected == 1

    async def bulk_transition(
        self,
        item_ids: Sequence[int],
        from_status: OrderItemStatus,
        to_status: OrderItemStatus,
        now: datetime,
    ) -> int:
        """Compare-and-set on a batch of items. Returns the affected row count."""
        return await self.update_where(
            OrderItem.id.in_(item_ids),
            OrderItem.status == from_status.value,
            status=to_status.value,
            updated_at=now,
        )

    # =========================================================================
    # Prep console queries
    # =========================================================================

    def _console_criteria(self, sector_id: int) -> list[ColumnElement[bool]]:
        return [
            self._scope(),
            OrderItem.prep_sector_id == sector_id,
            OrderItem.status.in_([status.value for status in CONSOLE_ITEM_STATUSES]),
            Order.status.not_in(_CLOSED),
        ]

    async def find_console_rows(self, sector_id: int) -> Sequence[Row]:
        """
        Active items of a sector joined with their order, table and dish.
        Sorted oldest order first so tickets come out in queue order.
        """
        query = (
            select(OrderItem, Order, Table, Dish)
            .join(Order, Order.id == OrderItem.order_id)
            .join(Table, Table.id == Order.table_id)
            .join(Dish, Dish.id == OrderItem.dish_id)
            .where(*self._console_criteria(sector_id))
            .order_by(Order.created_at, Order.id, OrderItem.id)
        )
        result = await self._db.execute(query)
        return result.all()

    async def count_active_orders(self, sector_id: int) -> int:
        query = (
            select(func.count(distinct(OrderItem.order_id)))
            .join(Order, Order.id == OrderItem.order_id)
            .where(*self._console_criteria(sector_id))
        )
        return await self._db.scalar(query) or 0

    async def count_by_status(self, sector_id: int) -> dict[str, int]:
        query = (
            select(OrderItem.status, func.count(OrderItem.id))
            .join(Order, Order.id == OrderItem.order_id)
            .where(*self._console_criteria(sector_id))
            .group_by(OrderItem.status)
        )
        result = await self._db.execute(query)
        return {status: count for status, count in result.all()}

    async def find_served_since(self, sector_id: int, since: datetime) -> Sequence[Row]:
        """(created_at, updated_at) of items of the sector served after ``since``."""
        query = select(OrderItem.created_at, OrderItem.updated_at).where(
            self._scope(),
            OrderItem.prep_sector_id == sector_id,
            OrderItem.status == OrderItemStatus.SERVED.value,
            OrderItem.updated_at >= since,
        )
        result = await self._db.execute(query)
        return result.all()


class OrderHistoryRepository:
    """
    Insert and read access to the status history. There is no update or
    delete path; the model rejects updates as well.
    """

    def __init__(self, db: AsyncSession, tenant_id: int):
        self._db = db
        self.tenant_id = tenant_id

    def record(
        self,
        order_id: int,
        to_status: str,
        *,
        from_status: str | None = None,
        order_item_id: int | None = None,
        changed_by_id: int | None = None,
        changed_at: datetime,
        notes: str | None = None,
    ) -> OrderStatusHistory:
        entry = OrderStatusHistory(
            order_id=order_id,
            order_item_id=order_item_id,
            from_status=from_status,
            to_status=to_status,
            changed_by_id=changed_by_id,
            changed_at=changed_at,
            notes=notes,
        )
        self._db.add(entry)
        return entry

    async def find_recent(self, order_id: int, limit: int) -> Sequence[OrderStatusHistory]:
        """Newest entries first; the order must belong to this tenant."""
        query = (
            select(OrderStatusHistory)
            .join(Order, Order.id == OrderStatusHistory.order_id)
            .where(Order.tenant_id == self.tenant_id, OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.changed_at.desc(), OrderStatusHistory.id.desc())
            .limit(limit)
        )
        result = await self._db.execute(query)
        return result.scalars().all()
