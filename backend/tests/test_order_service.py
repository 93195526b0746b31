"""
Tests for OrderService: QR ordering flow and staff order views.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.orm import selectinload

from rest_api.models import Dish, Order, OrderItem, OrderStatusHistory, Table
from rest_api.repositories import OrderFilters, OrderRepository
from rest_api.seed import BAR, KITCHEN, seed_restaurant
from rest_api.services.domain import OrderService
from rest_api.services.domain.order_sequence import business_date_for
from shared.config.constants import HistoryNotes, OrderItemStatus, OrderStatus, Role, TableStatus
from shared.config.settings import settings
from shared.utils.exceptions import (
    ConflictError,
    DishUnavailableError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import CreateOrderRequest, OrderItemInput, UpdateOrderStatusRequest


async def count_orders(db_session) -> int:
    return await db_session.scalar(select(func.count(Order.id)))


class TestValidateTable:
    """Tests for validate_table."""

    @pytest.mark.asyncio
    async def test_returns_table_tenant_and_settings(self, db_session, restaurant):
        """Should describe the table and the restaurant's billing settings."""
        result = await OrderService(db_session).validate_table(restaurant.slug, restaurant.qr_codes[0])

        assert result.table.number == 1
        assert result.tenant.slug == "casa-pepe"
        assert result.tenant.name == "Casa Pepe"
        assert result.settings.vat_rate == Decimal("10.00")
        assert result.settings.tip_percentages == [5, 10, 15]
        assert result.settings.currency == "EUR"

    @pytest.mark.asyncio
    async def test_falls_back_to_defaults_without_settings(self, session_factory):
        """Should use the system defaults when the tenant has no settings row."""
        async with session_factory() as session:
            seeded = await seed_restaurant(session, "Sin Ajustes", "sin-ajustes", with_settings=False)
            await session.commit()

            result = await OrderService(session).validate_table(seeded.slug, seeded.qr_codes[0])

        assert result.settings.vat_rate == Decimal("10.00")
        assert result.settings.tip_enabled is True
        assert result.settings.tip_percentages == [5, 10, 15]
        assert result.settings.currency == "EUR"

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, db_session, restaurant):
        """Should raise NotFoundError without exposing tenant ids."""
        with pytest.raises(NotFoundError) as exc_info:
            await OrderService(db_session).validate_table("nope", restaurant.qr_codes[0])
        assert exc_info.value.detail == "Restaurant not found"

    @pytest.mark.asyncio
    async def test_unknown_qr_code(self, db_session, restaurant):
        with pytest.raises(NotFoundError) as exc_info:
            await OrderService(db_session).validate_table(restaurant.slug, "missing-qr")
        assert exc_info.value.detail == "Table not found"

    @pytest.mark.asyncio
    async def test_qr_code_of_other_tenant(self, db_session, restaurant, other_restaurant):
        """Should not resolve another tenant's table under this tenant's slug."""
        with pytest.raises(NotFoundError):
            await OrderService(db_session).validate_table(
                restaurant.slug, other_restaurant.qr_codes[0]
            )


class TestCreateOrder:
    """Tests for create_order."""

    @pytest.mark.asyncio
    async def test_creates_priced_order(self, db_session, restaurant, place_order, clock):
        """Should price server-side, snapshot items, log history and occupy the table."""
        response = await place_order(
            restaurant,
            [("Paella valenciana", 2), ("Caña", 3)],
            tip_percentage=Decimal("10"),
            customer_notes="Sin prisa",
        )

        # 2 x 16.00 + 3 x 2.50 = 39.50; VAT 3.95; tip 3.95
        assert response.order_number == 1
        assert response.status == OrderStatus.PENDING
        assert response.total == Decimal("47.40")
        assert response.created_at == clock()

        order = await db_session.scalar(
            select(Order)
            .where(Order.id == response.order_id)
            .options(selectinload(Order.items), selectinload(Order.history))
        )
        assert order.tenant_id == restaurant.tenant_id
        assert order.business_date == date(2025, 3, 14)
        assert order.subtotal == Decimal("39.50")
        assert order.vat_amount == Decimal("3.95")
        assert order.tip_amount == Decimal("3.95")
        assert order.total == order.subtotal + order.vat_amount + order.tip_amount
        assert order.customer_notes == "Sin prisa"

        by_dish = {item.dish_id: item for item in order.items}
        paella = by_dish[restaurant.dish_ids["Paella valenciana"]]
        cana = by_dish[restaurant.dish_ids["Caña"]]
        assert paella.prep_sector_id == restaurant.sector_ids[KITCHEN]
        assert paella.unit_price == Decimal("16.00")
        assert paella.quantity == 2
        assert cana.prep_sector_id == restaurant.sector_ids[BAR]
        assert all(item.status == OrderItemStatus.PENDING.value for item in order.items)
        assert all(item.tenant_id == restaurant.tenant_id for item in order.items)

        assert len(order.history) == 1
        assert order.history[0].from_status is None
        assert order.history[0].to_status == OrderStatus.PENDING.value
        assert order.history[0].changed_by_id is None
        assert order.history[0].notes == HistoryNotes.ORDER_PLACED

        table = await db_session.get(Table, restaurant.table_ids[0])
        assert table.status == TableStatus.OCCUPIED.value

    @pytest.mark.asyncio
    async def test_dish_without_sector(self, db_session, restaurant, place_order):
        """Should accept dishes whose category routes nowhere, with no sector."""
        response = await place_order(restaurant, [("Pan y alioli", 1)])

        item = await db_session.scalar(select(OrderItem).where(OrderItem.order_id == response.order_id))
        assert item.prep_sector_id is None

    @pytest.mark.asyncio
    async def test_same_dish_on_several_lines(self, db_session, restaurant, place_order):
        """Should keep each cart line as its own item."""
        response = await place_order(restaurant, [("Caña", 1), ("Caña", 2)])

        items = (
            await db_session.scalars(select(OrderItem).where(OrderItem.order_id == response.order_id))
        ).all()
        assert sorted(item.quantity for item in items) == [1, 2]
        assert response.total == Decimal("8.25")

    @pytest.mark.asyncio
    async def test_price_snapshot(self, db_session, restaurant, place_order):
        """Should keep the ordered price when the dish price changes later."""
        response = await place_order(restaurant, [("Caña", 1)])
        await db_session.execute(
            update(Dish).where(Dish.id == restaurant.dish_ids["Caña"]).values(price=Decimal("9.99"))
        )
        await db_session.commit()

        item = await db_session.scalar(select(OrderItem).where(OrderItem.order_id == response.order_id))
        assert item.unit_price == Decimal("2.50")

    @pytest.mark.asyncio
    async def test_unavailable_dish_writes_nothing(self, db_session, restaurant, place_order):
        """Should reject out-of-stock dishes with 400 and leave no rows behind."""
        await db_session.execute(
            update(Dish).where(Dish.id == restaurant.dish_ids["Caña"]).values(is_in_stock=False)
        )
        await db_session.commit()

        with pytest.raises(DishUnavailableError) as exc_info:
            await place_order(restaurant, [("Paella valenciana", 1), ("Caña", 1)])

        assert exc_info.value.status_code == 400
        assert exc_info.value.dish_ids == [restaurant.dish_ids["Caña"]]
        assert exc_info.value.detail == f"Some dishes are no longer available: {restaurant.dish_ids['Caña']}"
        assert await count_orders(db_session) == 0
        assert await db_session.scalar(select(func.count(OrderItem.id))) == 0
        assert await db_session.scalar(select(func.count(OrderStatusHistory.id))) == 0
        table = await db_session.get(Table, restaurant.table_ids[0])
        assert table.status == TableStatus.AVAILABLE.value

    @pytest.mark.asyncio
    async def test_disabled_dish_is_unavailable(self, db_session, restaurant, place_order):
        await db_session.execute(
            update(Dish).where(Dish.id == restaurant.dish_ids["Caña"]).values(is_available=False)
        )
        await db_session.commit()

        with pytest.raises(DishUnavailableError):
            await place_order(restaurant, [("Caña", 1)])

    @pytest.mark.asyncio
    async def test_unknown_dish_id(self, db_session, restaurant, clock):
        request = CreateOrderRequest(items=[OrderItemInput(dish_id=999_999, quantity=1)])
        with pytest.raises(DishUnavailableError):
            await OrderService(db_session, clock=clock).create_order(
                restaurant.slug, restaurant.qr_codes[0], request
            )

    @pytest.mark.asyncio
    async def test_empty_order(self, db_session, restaurant, clock):
        """Should reject an empty cart with 400."""
        with pytest.raises(ValidationError) as exc_info:
            await OrderService(db_session, clock=clock).create_order(
                restaurant.slug, restaurant.qr_codes[0], CreateOrderRequest(items=[])
            )
        assert exc_info.value.status_code == 400
        assert await count_orders(db_session) == 0

    @pytest.mark.asyncio
    async def test_dish_of_other_tenant(self, db_session, restaurant, other_restaurant, clock):
        """Should treat another tenant's dish as unavailable."""
        foreign_dish = other_restaurant.dish_ids["Caña"]
        request = CreateOrderRequest(items=[OrderItemInput(dish_id=foreign_dish, quantity=1)])

        with pytest.raises(DishUnavailableError):
            await OrderService(db_session, clock=clock).create_order(
                restaurant.slug, restaurant.qr_codes[0], request
            )
        assert await count_orders(db_session) == 0

    @pytest.mark.asyncio
    async def test_numbers_are_per_tenant(self, restaurant, other_restaurant, place_order):
        """Should number each tenant's orders independently."""
        first = await place_order(restaurant, [("Caña", 1)])
        second = await place_order(restaurant, [("Caña", 1)], table=1)
        other = await place_order(other_restaurant, [("Caña", 1)])

        assert (first.order_number, second.order_number) == (1, 2)
        assert other.order_number == 1

    @pytest.mark.asyncio
    async def test_numbers_restart_each_business_day(self, restaurant, place_order, clock):
        """Should start again at 1 on the next tenant-local day."""
        await place_order(restaurant, [("Caña", 1)])
        await place_order(restaurant, [("Caña", 1)])

        clock.advance(days=1)
        next_day = await place_order(restaurant, [("Caña", 1)])

        assert next_day.order_number == 1

    @pytest.mark.asyncio
    async def test_occupied_table_stays_occupied(self, db_session, restaurant, place_order):
        await place_order(restaurant, [("Caña", 1)])
        await place_order(restaurant, [("Caña", 1)])

        table = await db_session.get(Table, restaurant.table_ids[0])
        assert table.status == TableStatus.OCCUPIED.value


class TestBusinessDate:
    def test_uses_tenant_timezone(self):
        """Should roll over at local midnight, not UTC midnight."""
        late_utc = datetime(2025, 3, 14, 23, 30, tzinfo=timezone.utc)

        assert business_date_for(late_utc, "Europe/Madrid") == date(2025, 3, 15)
        assert business_date_for(late_utc, "UTC") == date(2025, 3, 14)


class TestGetOrderStatus:
    """Tests for the customer-facing order status."""

    @pytest.mark.asyncio
    async def test_returns_items_and_history(self, db_session, restaurant, place_order, clock):
        created = await place_order(restaurant, [("Paella valenciana", 1)])

        result = await OrderService(db_session, clock=clock).get_order_status(
            restaurant.slug, restaurant.qr_codes[0], created.order_number
        )

        assert result.order_number == 1
        assert result.status == OrderStatus.PENDING
        assert [item.dish_name for item in result.items] == ["Paella valenciana"]
        assert result.history[0].to_status == OrderStatus.PENDING.value
        assert "changed_by_id" not in result.history[0].model_dump()

    @pytest.mark.asyncio
    async def test_other_table_cannot_see_order(self, db_session, restaurant, place_order, clock):
        created = await place_order(restaurant, [("Caña", 1)])

        with pytest.raises(NotFoundError):
            await OrderService(db_session, clock=clock).get_order_status(
                restaurant.slug, restaurant.qr_codes[1], created.order_number
            )

    @pytest.mark.asyncio
    async def test_open_order_survives_midnight(self, db_session, restaurant, place_order, clock):
        """Should still find last night's order while it is open."""
        created = await place_order(restaurant, [("Caña", 1)])
        clock.advance(hours=12)

        result = await OrderService(db_session, clock=clock).get_order_status(
            restaurant.slug, restaurant.qr_codes[0], created.order_number
        )

        assert result.status == OrderStatus.PENDING
        assert result.total == created.total

    @pytest.mark.asyncio
    async def test_todays_number_wins_over_yesterdays(
        self, db_session, restaurant, place_order, clock
    ):
        await place_order(restaurant, [("Caña", 1)])
        clock.advance(days=1)
        today = await place_order(restaurant, [("Paella valenciana", 1)])

        result = await OrderService(db_session, clock=clock).get_order_status(
            restaurant.slug, restaurant.qr_codes[0], 1
        )

        assert today.order_number == 1
        assert [item.dish_name for item in result.items] == ["Paella valenciana"]

    @pytest.mark.asyncio
    async def test_yesterdays_closed_order_not_found(
        self, db_session, restaurant, place_order, clock
    ):
        created = await place_order(restaurant, [("Caña", 1)])
        await db_session.execute(
            update(Order)
            .where(Order.id == created.order_id)
            .values(status=OrderStatus.CANCELLED.value)
        )
        await db_session.commit()
        clock.advance(days=1)

        with pytest.raises(NotFoundError):
            await OrderService(db_session, clock=clock).get_order_status(
                restaurant.slug, restaurant.qr_codes[0], created.order_number
            )


class TestStaffOrders:
    """Tests for list_orders, get_order and update_order_status."""

    @pytest.mark.asyncio
    async def test_list_orders_newest_first(self, db_session, restaurant, place_order, staff, clock):
        first = await place_order(restaurant, [("Caña", 1)])
        clock.advance(minutes=5)
        second = await place_order(restaurant, [("Caña", 2)], table=1)

        orders = await OrderService(db_session).list_orders(
            staff(restaurant, Role.WAITER), OrderFilters()
        )

        assert [order.id for order in orders] == [second.order_id, first.order_id]
        assert orders[0].table_number == 2
        assert orders[0].item_count == 1

    @pytest.mark.asyncio
    async def test_list_orders_filters(self, db_session, restaurant, place_order, staff):
        await place_order(restaurant, [("Caña", 1)])
        other_table = await place_order(restaurant, [("Caña", 1)], table=1)

        orders = await OrderService(db_session).list_orders(
            staff(restaurant, Role.ADMIN),
            OrderFilters(table_id=restaurant.table_ids[1], status=OrderStatus.PENDING),
        )

        assert [order.id for order in orders] == [other_table.order_id]

    @pytest.mark.asyncio
    async def test_list_orders_is_tenant_scoped(
        self, db_session, restaurant, other_restaurant, place_order, staff
    ):
        await place_order(other_restaurant, [("Caña", 1)])

        orders = await OrderService(db_session).list_orders(
            staff(restaurant, Role.ADMIN), OrderFilters()
        )
        assert orders == []

    @pytest.mark.asyncio
    async def test_get_order_of_other_tenant(
        self, db_session, restaurant, other_restaurant, place_order, staff
    ):
        """Should answer 404 for another tenant's order, never leak it."""
        created = await place_order(other_restaurant, [("Caña", 1)])

        with pytest.raises(NotFoundError):
            await OrderService(db_session).get_order(staff(restaurant, Role.ADMIN), created.order_id)

    @pytest.mark.asyncio
    async def test_manual_status_change(self, db_session, restaurant, place_order, staff, clock):
        created = await place_order(restaurant, [("Caña", 1)])

        result = await OrderService(db_session, clock=clock).update_order_status(
            staff(restaurant, Role.WAITER, user_id=21),
            created.order_id,
            UpdateOrderStatusRequest(status=OrderStatus.CANCELLED, notes="Customer left"),
        )

        assert result.status == OrderStatus.CANCELLED
        last = result.history[-1]
        assert (last.from_status, last.to_status) == ("PENDING", "CANCELLED")
        assert last.changed_by_id == 21
        assert last.notes == "Customer left"

    @pytest.mark.asyncio
    async def test_manual_paid_records_closer(self, db_session, restaurant, place_order, staff, clock):
        created = await place_order(restaurant, [("Caña", 1)])

        result = await OrderService(db_session, clock=clock).update_order_status(
            staff(restaurant, Role.ADMIN, user_id=5),
            created.order_id,
            UpdateOrderStatusRequest(status=OrderStatus.PAID),
        )

        assert result.closed_by_id == 5
        assert result.closed_at == clock()
        assert result.history[-1].notes == HistoryNotes.MANUAL_OVERRIDE

    @pytest.mark.asyncio
    async def test_closed_order_cannot_change(self, db_session, restaurant, place_order, staff, clock):
        created = await place_order(restaurant, [("Caña", 1)])
        service = OrderService(db_session, clock=clock)
        ctx = staff(restaurant, Role.ADMIN)
        await service.update_order_status(
            ctx, created.order_id, UpdateOrderStatusRequest(status=OrderStatus.CANCELLED)
        )

        with pytest.raises(InvalidTransitionError):
            await service.update_order_status(
                ctx, created.order_id, UpdateOrderStatusRequest(status=OrderStatus.PENDING)
            )

    @pytest.mark.asyncio
    async def test_same_status_rejected(self, db_session, restaurant, place_order, staff, clock):
        created = await place_order(restaurant, [("Caña", 1)])

        with pytest.raises(ValidationError):
            await OrderService(db_session, clock=clock).update_order_status(
                staff(restaurant, Role.ADMIN),
                created.order_id,
                UpdateOrderStatusRequest(status=OrderStatus.PENDING),
            )

    @pytest.mark.asyncio
    async def test_cook_cannot_change_orders(self, db_session, restaurant, place_order, staff, clock):
        created = await place_order(restaurant, [("Caña", 1)])

        with pytest.raises(ForbiddenError):
            await OrderService(db_session, clock=clock).update_order_status(
                staff(restaurant, Role.COOK),
                created.order_id,
                UpdateOrderStatusRequest(status=OrderStatus.CANCELLED),
            )


class TestOrderStatusRaces:
    """Manual status changes that lose a compare-and-set."""

    @pytest.mark.asyncio
    async def test_lost_race_is_retried(
        self, db_session, restaurant, place_order, staff, clock, monkeypatch
    ):
        """Should re-read the order and apply the change on the next attempt."""
        created = await place_order(restaurant, [("Caña", 1)])
        transition = OrderRepository.transition
        seen = []

        async def racing_transition(repo, order_id, from_status, to_status, now, **values):
            seen.append(from_status)
            if len(seen) == 1:
                await repo._db.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(status=OrderStatus.CONFIRMED.value)
                    .execution_options(synchronize_session=False)
                )
            return await transition(repo, order_id, from_status, to_status, now, **values)

        monkeypatch.setattr(OrderRepository, "transition", racing_transition)

        result = await OrderService(db_session, clock=clock).update_order_status(
            staff(restaurant, Role.WAITER),
            created.order_id,
            UpdateOrderStatusRequest(status=OrderStatus.CANCELLED),
        )

        assert seen == [OrderStatus.PENDING.value, OrderStatus.PENDING.value]
        assert result.status == OrderStatus.CANCELLED
        assert [entry.to_status for entry in result.history].count("CANCELLED") == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(
        self, db_session, restaurant, place_order, staff, clock, monkeypatch
    ):
        created = await place_order(restaurant, [("Caña", 1)])
        attempts = []

        async def losing_transition(repo, order_id, *args, **values):
            attempts.append(order_id)
            return False

        monkeypatch.setattr(OrderRepository, "transition", losing_transition)

        with pytest.raises(ConflictError) as exc_info:
            await OrderService(db_session, clock=clock).update_order_status(
                staff(restaurant, Role.WAITER),
                created.order_id,
                UpdateOrderStatusRequest(status=OrderStatus.CANCELLED),
            )
        await db_session.rollback()

        assert exc_info.value.status_code == 409
        assert len(attempts) == settings.item_update_max_retries
        order = await db_session.get(Order, created.order_id)
        assert order.status == OrderStatus.PENDING.value
