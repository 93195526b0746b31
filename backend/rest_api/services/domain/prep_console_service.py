"""
Prep Console Domain Service.

Read side of the kitchen and bar consoles: kanban tickets per sector and
the header statistics. Consoles poll these endpoints; nothing here writes.
"""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.models import PrepSector
from rest_api.repositories import OrderItemRepository, PrepSectorRepository
from rest_api.services.permissions import Action, PermissionContext, Resource
from shared.config.constants import CONSOLE_ITEM_STATUSES, Limits, OrderItemStatus
from shared.utils.clock import Clock, elapsed_seconds, ensure_utc, utcnow
from shared.utils.exceptions import PrepSectorNotFoundError
from shared.utils.kitchen_schemas import (
    ConsoleItemOutput,
    ConsoleTicketOutput,
    ItemCountsOutput,
    SectorStatsOutput,
    SectorTicketsResponse,
)


class PrepConsoleService:
    """Domain service for prep console queries."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self._db = db
        self._clock = clock

    async def _resolve_sector(self, ctx: PermissionContext, sector_code: str) -> PrepSector:
        """Permission, sector ownership, then lookup; in that order."""
        ctx.require(Resource.PREP, Action.VIEW)

        code = sector_code.strip().upper()
        ctx.require_sector(code)

        sector = await PrepSectorRepository(self._db, ctx.tenant_id).find_by_code(code)
        if sector is None:
            raise PrepSectorNotFoundError(code, tenant_id=ctx.tenant_id)
        return sector

    async def list_sector_tickets(
        self, ctx: PermissionContext, sector_code: str
    ) -> SectorTicketsResponse:
        """
        Active items of a sector grouped into tickets.

        A ticket is the items of one order sharing one status, so an order
        can show up in several columns at once. Each column lists the oldest
        order first.
        """
        sector = await self._resolve_sector(ctx, sector_code)
        rows = await OrderItemRepository(self._db, ctx.tenant_id).find_console_rows(sector.id)
        now = self._clock()

        # Rows come sorted by (order created_at, order id, item id), and dicts
        # keep insertion order, so tickets stay in queue order
        tickets: dict[tuple[int, str], ConsoleTicketOutput] = {}
        for item, order, table, dish in rows:
            key = (order.id, item.status)
            ticket = tickets.get(key)
            if ticket is None:
                created_at = ensure_utc(order.created_at)
                ticket = ConsoleTicketOutput(
                    order_id=order.id,
                    order_number=order.order_number,
                    table_number=table.number,
                    table_name=table.name,
                    customer_notes=order.customer_notes,
                    created_at=created_at,
                    elapsed_seconds=elapsed_seconds(created_at, now),
                    items=[],
                )
                tickets[key] = ticket

            ticket.items.append(
                ConsoleItemOutput(
                    id=item.id,
                    dish_id=dish.id,
                    dish_name=dish.name,
                    quantity=item.quantity,
                    notes=item.notes,
                    allergens=list(dish.allergens or []),
                )
            )

        columns: dict[str, list[ConsoleTicketOutput]] = {
            status.value: [] for status in CONSOLE_ITEM_STATUSES
        }
        for (_, status), ticket in tickets.items():
            columns[status].append(ticket)

        return SectorTicketsResponse(
            sector_id=sector.id,
            sector_code=sector.code,
            sector_name=sector.name,
            pending=columns[OrderItemStatus.PENDING.value],
            in_progress=columns[OrderItemStatus.IN_PROGRESS.value],
            ready=columns[OrderItemStatus.READY.value],
        )

    async def get_sector_stats(self, ctx: PermissionContext, sector_code: str) -> SectorStatsOutput:
        """
        Console header numbers.

        ``avg_ticket_time`` is the mean seconds from item creation to SERVED
        over items served in the trailing window, or None if there are none.
        """
        sector = await self._resolve_sector(ctx, sector_code)
        items = OrderItemRepository(self._db, ctx.tenant_id)

        active_orders = await items.count_active_orders(sector.id)
        counts = await items.count_by_status(sector.id)

        since = self._clock() - timedelta(hours=Limits.STATS_WINDOW_HOURS)
        served = await items.find_served_since(sector.id, since)
        avg_ticket_time = None
        if served:
            total = sum(
                (ensure_utc(updated_at) - ensure_utc(created_at)).total_seconds()
                for created_at, updated_at in served
            )
            avg_ticket_time = round(total / len(served))

        return SectorStatsOutput(
            sector_id=sector.id,
            sector_code=sector.code,
            sector_name=sector.name,
            active_orders=active_orders,
            avg_ticket_time=avg_ticket_time,
            item_counts=ItemCountsOutput(
                pending=counts.get(OrderItemStatus.PENDING.value, 0),
                in_progress=counts.get(OrderItemStatus.IN_PROGRESS.value, 0),
                ready=counts.get(OrderItemStatus.READY.value, 0),
            ),
            completed_last_24h=len(served),
        )
