"""
Tests for PrepConsoleService: sector tickets and statistics.
"""

import pytest
from sqlalchemy import select

from rest_api.models import OrderItem
from rest_api.seed import BAR, KITCHEN
from rest_api.services.domain import ItemStatusService, OrderService, PrepConsoleService
from shared.config.constants import OrderItemStatus, OrderStatus, Role
from shared.utils.exceptions import ForbiddenError, NotFoundError, SectorAccessError
from shared.utils.schemas import UpdateOrderStatusRequest


async def item_id(session_factory, restaurant, order_id, dish_name) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(OrderItem.id).where(
                OrderItem.order_id == order_id,
                OrderItem.dish_id == restaurant.dish_ids[dish_name],
            )
        )


class TestListSectorTickets:
    """Tests for list_sector_tickets."""

    @pytest.mark.asyncio
    async def test_routes_items_by_sector(self, db_session, restaurant, place_order, staff, clock):
        """Should show each sector only its own items, oldest order first."""
        first = await place_order(restaurant, [("Paella valenciana", 1), ("Caña", 2)])
        clock.advance(minutes=2)
        second = await place_order(restaurant, [("Croquetas de jamón", 2)], table=1)

        console = PrepConsoleService(db_session, clock=clock)
        kitchen = await console.list_sector_tickets(staff(restaurant, Role.COOK), KITCHEN)
        bar = await console.list_sector_tickets(staff(restaurant, Role.BARTENDER), BAR)

        assert kitchen.sector_code == KITCHEN
        assert kitchen.sector_name == "Kitchen"
        assert [t.order_id for t in kitchen.pending] == [first.order_id, second.order_id]
        assert kitchen.in_progress == [] and kitchen.ready == []
        assert [i.dish_name for i in kitchen.pending[0].items] == ["Paella valenciana"]

        assert [t.order_id for t in bar.pending] == [first.order_id]
        assert bar.pending[0].items[0].quantity == 2

    @pytest.mark.asyncio
    async def test_ticket_details(self, db_session, restaurant, place_order, staff, clock):
        """Should carry table, notes, allergens and the time waited."""
        created = await place_order(
            restaurant, [("Croquetas de jamón", 1)], table=2, customer_notes="Cumpleaños"
        )
        clock.advance(minutes=3, seconds=5)

        kitchen = await PrepConsoleService(db_session, clock=clock).list_sector_tickets(
            staff(restaurant, Role.ADMIN), "kitchen"
        )

        ticket = kitchen.pending[0]
        assert ticket.order_id == created.order_id
        assert ticket.order_number == created.order_number
        assert ticket.table_number == 3
        assert ticket.table_name == "Table 3"
        assert ticket.customer_notes == "Cumpleaños"
        assert ticket.elapsed_seconds == 185
        assert sorted(ticket.items[0].allergens) == ["eggs", "gluten", "milk"]

    @pytest.mark.asyncio
    async def test_order_split_across_columns(
        self, db_session, session_factory, restaurant, place_order, staff, clock
    ):
        """Should show one ticket per (order, status) pair."""
        created = await place_order(
            restaurant, [("Paella valenciana", 1), ("Croquetas de jamón", 1)]
        )
        paella = await item_id(session_factory, restaurant, created.order_id, "Paella valenciana")
        cook = staff(restaurant, Role.COOK)
        await ItemStatusService(db_session, clock=clock).update_item_status(
            cook, paella, OrderItemStatus.IN_PROGRESS
        )

        kitchen = await PrepConsoleService(db_session, clock=clock).list_sector_tickets(cook, KITCHEN)

        assert [t.order_id for t in kitchen.pending] == [created.order_id]
        assert [t.order_id for t in kitchen.in_progress] == [created.order_id]
        assert [i.dish_name for i in kitchen.pending[0].items] == ["Croquetas de jamón"]
        assert [i.dish_name for i in kitchen.in_progress[0].items] == ["Paella valenciana"]

    @pytest.mark.asyncio
    async def test_hides_served_items_and_closed_orders(
        self, db_session, session_factory, restaurant, place_order, staff, clock
    ):
        served_order = await place_order(restaurant, [("Caña", 1)])
        cancelled_order = await place_order(restaurant, [("Tinto de verano", 1)], table=1)

        cana = await item_id(session_factory, restaurant, served_order.order_id, "Caña")
        items = ItemStatusService(db_session, clock=clock)
        bartender = staff(restaurant, Role.BARTENDER)
        for target in (OrderItemStatus.IN_PROGRESS, OrderItemStatus.READY, OrderItemStatus.SERVED):
            await items.update_item_status(bartender, cana, target)

        await OrderService(db_session, clock=clock).update_order_status(
            staff(restaurant, Role.ADMIN),
            cancelled_order.order_id,
            UpdateOrderStatusRequest(status=OrderStatus.CANCELLED),
        )

        bar = await PrepConsoleService(db_session, clock=clock).list_sector_tickets(bartender, BAR)

        assert bar.pending == [] and bar.in_progress == [] and bar.ready == []

    @pytest.mark.asyncio
    async def test_tenant_isolation(
        self, db_session, restaurant, other_restaurant, place_order, staff, clock
    ):
        await place_order(other_restaurant, [("Paella valenciana", 1)])

        kitchen = await PrepConsoleService(db_session, clock=clock).list_sector_tickets(
            staff(restaurant, Role.COOK), KITCHEN
        )
        assert kitchen.pending == []

    @pytest.mark.asyncio
    async def test_cook_cannot_open_bar(self, db_session, restaurant, staff, clock):
        with pytest.raises(SectorAccessError):
            await PrepConsoleService(db_session, clock=clock).list_sector_tickets(
                staff(restaurant, Role.COOK), BAR
            )

    @pytest.mark.asyncio
    async def test_waiter_has_no_console(self, db_session, restaurant, staff, clock):
        with pytest.raises(ForbiddenError):
            await PrepConsoleService(db_session, clock=clock).list_sector_tickets(
                staff(restaurant, Role.WAITER), KITCHEN
            )

    @pytest.mark.asyncio
    async def test_unknown_sector(self, db_session, restaurant, staff, clock):
        with pytest.raises(NotFoundError):
            await PrepConsoleService(db_session, clock=clock).list_sector_tickets(
                staff(restaurant, Role.ADMIN), "GRILL"
            )


class TestSectorStats:
    """Tests for get_sector_stats."""

    @pytest.mark.asyncio
    async def test_counts_and_average(
        self, db_session, session_factory, restaurant, place_order, staff, clock
    ):
        """Should average creation-to-served time over the trailing day."""
        created = await place_order(restaurant, [("Caña", 1), ("Tinto de verano", 1)])
        cana = await item_id(session_factory, restaurant, created.order_id, "Caña")
        items = ItemStatusService(db_session, clock=clock)
        bartender = staff(restaurant, Role.BARTENDER)

        clock.advance(minutes=1)
        await items.update_item_status(bartender, cana, OrderItemStatus.IN_PROGRESS)
        clock.advance(minutes=2)
        await items.update_item_status(bartender, cana, OrderItemStatus.READY)
        clock.advance(minutes=2)
        await items.update_item_status(bartender, cana, OrderItemStatus.SERVED)

        stats = await PrepConsoleService(db_session, clock=clock).get_sector_stats(bartender, BAR)

        assert stats.sector_code == BAR
        assert stats.active_orders == 1
        assert stats.item_counts.pending == 1
        assert stats.item_counts.in_progress == 0
        assert stats.item_counts.ready == 0
        assert stats.completed_last_24h == 1
        assert stats.avg_ticket_time == 300

    @pytest.mark.asyncio
    async def test_window_excludes_old_items(
        self, db_session, session_factory, restaurant, place_order, staff, clock
    ):
        created = await place_order(restaurant, [("Caña", 1)])
        cana = await item_id(session_factory, restaurant, created.order_id, "Caña")
        items = ItemStatusService(db_session, clock=clock)
        bartender = staff(restaurant, Role.BARTENDER)
        for target in (OrderItemStatus.IN_PROGRESS, OrderItemStatus.READY, OrderItemStatus.SERVED):
            await items.update_item_status(bartender, cana, target)

        clock.advance(hours=25)
        stats = await PrepConsoleService(db_session, clock=clock).get_sector_stats(bartender, BAR)

        assert stats.completed_last_24h == 0
        assert stats.avg_ticket_time is None
        assert stats.active_orders == 0

    @pytest.mark.asyncio
    async def test_empty_sector(self, db_session, restaurant, staff, clock):
        stats = await PrepConsoleService(db_session, clock=clock).get_sector_stats(
            staff(restaurant, Role.COOK), KITCHEN
        )

        assert stats.active_orders == 0
        assert stats.item_counts.pending == 0
        assert stats.avg_ticket_time is None

    @pytest.mark.asyncio
    async def test_bartender_cannot_read_kitchen_stats(self, db_session, restaurant, staff, clock):
        with pytest.raises(SectorAccessError):
            await PrepConsoleService(db_session, clock=clock).get_sector_stats(
                staff(restaurant, Role.BARTENDER), KITCHEN
            )
