"""
Order Domain Service.

Handles the customer QR ordering flow (validate table, place order, follow
its status) and the staff order views (list, detail, manual override).
Routers stay thin and delegate here.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.models import Order, OrderItem, OrderStatusHistory, Table, Tenant, TenantSettings
from rest_api.repositories import (
    DishRepository,
    OrderFilters,
    OrderHistoryRepository,
    OrderItemRepository,
    OrderRepository,
    TableRepository,
    TenantRepository,
)
from rest_api.services.permissions import Action, PermissionContext, Resource
from shared.config.constants import (
    CLOSED_ORDER_STATUSES,
    ErrorMessages,
    HistoryNotes,
    Limits,
    OrderItemStatus,
    OrderStatus,
    SettingsDefaults,
    TableStatus,
)
from shared.config.logging import orders_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.security.rate_limit import KeyedRateLimiter
from shared.utils.clock import Clock, ensure_utc, utcnow
from shared.utils.exceptions import (
    ConflictError,
    DishUnavailableError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderDetailOutput,
    OrderItemOutput,
    OrderSummaryOutput,
    PublicHistoryEntry,
    PublicOrderStatusOutput,
    PublicSettingsInfo,
    PublicTableInfo,
    PublicTenantInfo,
    StatusHistoryOutput,
    UpdateOrderStatusRequest,
    ValidateTableResponse,
)

from .order_sequence import OrderSequenceAllocator, business_date_for, run_with_order_number_retry
from .pricing import calculate_totals


# =============================================================================
# Tenant settings with fallbacks
# =============================================================================


@dataclass(frozen=True)
class EffectiveSettings:
    """Tenant settings, or the system defaults when the tenant has none."""

    vat_rate: Decimal
    tip_enabled: bool
    tip_percentages: list[int]
    currency: str
    timezone: str


def resolve_settings(row: TenantSettings | None) -> EffectiveSettings:
    if row is None:
        return EffectiveSettings(
            vat_rate=Decimal(settings.default_vat_rate),
            tip_enabled=SettingsDefaults.TIP_ENABLED,
            tip_percentages=list(SettingsDefaults.TIP_PERCENTAGES),
            currency=settings.default_currency,
            timezone=settings.default_timezone,
        )
    return EffectiveSettings(
        vat_rate=Decimal(row.vat_rate),
        tip_enabled=row.tip_enabled,
        tip_percentages=list(row.tip_percentages or []),
        currency=row.currency,
        timezone=row.timezone,
    )


# =============================================================================
# Output builders
# =============================================================================


def order_item_output(item: OrderItem) -> OrderItemOutput:
    """Requires ``item.dish`` to be loaded."""
    return OrderItemOutput(
        id=item.id,
        dish_id=item.dish_id,
        dish_name=item.dish.name,
        quantity=item.quantity,
        unit_price=item.unit_price,
        notes=item.notes,
        status=item.status,
        prep_sector_id=item.prep_sector_id,
    )


def history_output(entry: OrderStatusHistory) -> StatusHistoryOutput:
    return StatusHistoryOutput(
        id=entry.id,
        order_item_id=entry.order_item_id,
        from_status=entry.from_status,
        to_status=entry.to_status,
        changed_by_id=entry.changed_by_id,
        changed_at=ensure_utc(entry.changed_at),
        notes=entry.notes,
    )


def order_detail_output(
    order: Order,
    *,
    table_number: int | None = None,
    history: Iterable[OrderStatusHistory] = (),
) -> OrderDetailOutput:
    """Requires ``order.items`` (with dishes) to be loaded."""
    return OrderDetailOutput(
        id=order.id,
        order_number=order.order_number,
        business_date=order.business_date,
        table_id=order.table_id,
        table_number=table_number,
        status=order.status,
        customer_notes=order.customer_notes,
        subtotal=order.subtotal,
        vat_amount=order.vat_amount,
        tip_amount=order.tip_amount,
        total=order.total,
        created_by_id=order.created_by_id,
        closed_by_id=order.closed_by_id,
        closed_at=ensure_utc(order.closed_at) if order.closed_at else None,
        created_at=ensure_utc(order.created_at),
        updated_at=ensure_utc(order.updated_at) if order.updated_at else None,
        items=[order_item_output(item) for item in order.items],
        history=[history_output(entry) for entry in history],
    )


class OrderService:
    """
    Domain service for order operations.

    Public methods take the tenant slug and table QR code from the URL;
    staff methods take a PermissionContext built from the access token.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utcnow,
        rate_limiter: KeyedRateLimiter | None = None,
    ):
        self._db = db
        self._clock = clock
        self._rate_limiter = rate_limiter
        self._tenants = TenantRepository(db)

    # =========================================================================
    # Public (customer) operations
    # =========================================================================

    async def _resolve_table(self, tenant_slug: str, qr_code: str) -> tuple[Tenant, Table]:
        """Active tenant by slug and active table by QR code within it."""
        tenant = await self._tenants.find_active_by_slug(tenant_slug)
        if tenant is None:
            raise NotFoundError("Restaurant", tenant_slug=tenant_slug)

        table = await TableRepository(self._db, tenant.id).find_active_by_qr_code(qr_code)
        if table is None:
            raise NotFoundError("Table", tenant_id=tenant.id, qr_code=qr_code)

        return tenant, table

    async def validate_table(self, tenant_slug: str, qr_code: str) -> ValidateTableResponse:
        """Check a scanned QR code and return what the ordering page needs."""
        tenant, table = await self._resolve_table(tenant_slug, qr_code)
        effective = resolve_settings(await self._tenants.find_settings(tenant.id))

        return ValidateTableResponse(
            table=PublicTableInfo(
                id=table.id,
                number=table.number,
                name=table.name,
                capacity=table.capacity,
                zone=table.zone,
            ),
            tenant=PublicTenantInfo(name=tenant.name, slug=tenant.slug),
            settings=PublicSettingsInfo(
                vat_rate=effective.vat_rate,
                tip_enabled=effective.tip_enabled,
                tip_percentages=effective.tip_percentages,
                currency=effective.currency,
            ),
        )

    async def create_order(
        self,
        tenant_slug: str,
        qr_code: str,
        request: CreateOrderRequest,
    ) -> CreateOrderResponse:
        """
        Turn a customer cart into a priced order.

        Order, items, the first history row and the table occupation are
        written in one transaction. Prices come from the dishes, never from
        the request.

        Raises:
            RateLimitError: Too many orders from this table.
            NotFoundError: Unknown tenant or table.
            ValidationError: Empty cart.
            DishUnavailableError: Some dishes cannot be ordered.
            ConflictError: Order number allocation kept colliding.
        """
        if self._rate_limiter is not None:
            await self._rate_limiter.check(f"{tenant_slug}:{qr_code}", context="create_order")

        async def attempt() -> CreateOrderResponse:
            response = await self._create_once(tenant_slug, qr_code, request)
            await safe_commit(self._db)
            return response

        return await run_with_order_number_retry(
            self._db, attempt, tenant_slug=tenant_slug, qr_code=qr_code
        )

    async def _create_once(
        self,
        tenant_slug: str,
        qr_code: str,
        request: CreateOrderRequest,
    ) -> CreateOrderResponse:
        tenant, table = await self._resolve_table(tenant_slug, qr_code)
        tenant_id, table_id = tenant.id, table.id

        if not request.items:
            raise ValidationError(ErrorMessages.EMPTY_ORDER, tenant_id=tenant_id, table_id=table_id)

        dishes = await DishRepository(self._db, tenant_id).find_orderable(
            [line.dish_id for line in request.items]
        )
        missing = sorted({line.dish_id for line in request.items} - dishes.keys())
        if missing:
            raise DishUnavailableError(missing, tenant_id=tenant_id, table_id=table_id)

        effective = resolve_settings(await self._tenants.find_settings(tenant_id))
        totals = calculate_totals(
            [(dishes[line.dish_id][0].price, line.quantity) for line in request.items],
            effective.vat_rate,
            request.tip_percentage,
        )

        now = self._clock()
        business_date = business_date_for(now, effective.timezone)
        order_number = await OrderSequenceAllocator(self._db, tenant_id).next_number(business_date)

        order = OrderRepository(self._db, tenant_id).add(
            Order(
                table_id=table_id,
                business_date=business_date,
                order_number=order_number,
                status=OrderStatus.PENDING.value,
                customer_notes=request.customer_notes,
                subtotal=totals.subtotal,
                vat_amount=totals.vat_amount,
                tip_amount=totals.tip_amount,
                total=totals.total,
                created_at=now,
                updated_at=now,
            )
        )
        # Assigns order.id; a lost numbering race fails here
        await self._db.flush()

        items = OrderItemRepository(self._db, tenant_id)
        for line in request.items:
            dish, prep_sector_id = dishes[line.dish_id]
            items.add(
                OrderItem(
                    order_id=order.id,
                    dish_id=dish.id,
                    prep_sector_id=prep_sector_id,
                    quantity=line.quantity,
                    unit_price=dish.price,
                    notes=line.notes,
                    status=OrderItemStatus.PENDING.value,
                    created_at=now,
                    updated_at=now,
                )
            )

        OrderHistoryRepository(self._db, tenant_id).record(
            order.id,
            OrderStatus.PENDING.value,
            changed_at=now,
            notes=HistoryNotes.ORDER_PLACED,
        )
        await TableRepository(self._db, tenant_id).transition(
            table_id, TableStatus.AVAILABLE, TableStatus.OCCUPIED
        )
        await self._db.flush()

        logger.info(
            "Order created",
            tenant_id=tenant_id,
            table_id=table_id,
            order_id=order.id,
            order_number=order_number,
            business_date=business_date.isoformat(),
            item_count=len(request.items),
            total=str(totals.total),
        )
        return CreateOrderResponse(
            order_id=order.id,
            order_number=order_number,
            status=OrderStatus.PENDING,
            total=totals.total,
            created_at=now,
        )

    async def get_order_status(
        self, tenant_slug: str, qr_code: str, order_number: int
    ) -> PublicOrderStatusOutput:
        """
        Today's order of this table by number, with its recent history.

        An order still open from an earlier business day is found as well,
        so a customer polling across midnight keeps seeing it.
        """
        tenant, table = await self._resolve_table(tenant_slug, qr_code)
        effective = resolve_settings(await self._tenants.find_settings(tenant.id))
        business_date = business_date_for(self._clock(), effective.timezone)

        orders = OrderRepository(self._db, tenant.id)
        order = await orders.find_by_number(table.id, business_date, order_number)
        if order is None:
            order = await orders.find_open_by_number_before(table.id, business_date, order_number)
        if order is None:
            raise NotFoundError("Order", f"#{order_number}", tenant_id=tenant.id, table_id=table.id)

        history = await OrderHistoryRepository(self._db, tenant.id).find_recent(
            order.id, Limits.PUBLIC_HISTORY_ENTRIES
        )
        return PublicOrderStatusOutput(
            order_number=order.order_number,
            status=order.status,
            customer_notes=order.customer_notes,
            subtotal=order.subtotal,
            vat_amount=order.vat_amount,
            tip_amount=order.tip_amount,
            total=order.total,
            created_at=ensure_utc(order.created_at),
            items=[order_item_output(item) for item in order.items],
            history=[
                PublicHistoryEntry(
                    from_status=entry.from_status,
                    to_status=entry.to_status,
                    changed_at=ensure_utc(entry.changed_at),
                    notes=entry.notes,
                )
                for entry in history
            ],
        )

    # =========================================================================
    # Staff operations
    # =========================================================================

    async def list_orders(
        self, ctx: PermissionContext, filters: OrderFilters
    ) -> list[OrderSummaryOutput]:
        """Tenant orders, newest first."""
        ctx.require(Resource.ORDERS, Action.VIEW)

        orders = await OrderRepository(self._db, ctx.tenant_id).find_all(filters)
        return [
            OrderSummaryOutput(
                id=order.id,
                order_number=order.order_number,
                business_date=order.business_date,
                table_id=order.table_id,
                table_number=order.table.number,
                status=order.status,
                total=order.total,
                item_count=len(order.items),
                created_at=ensure_utc(order.created_at),
            )
            for order in orders
        ]

    async def get_order(self, ctx: PermissionContext, order_id: int) -> OrderDetailOutput:
        """Order with items and its full status history."""
        ctx.require(Resource.ORDERS, Action.VIEW)

        order = await OrderRepository(self._db, ctx.tenant_id).find_detail(order_id)
        if order is None:
            raise NotFoundError("Order", order_id, tenant_id=ctx.tenant_id)

        return order_detail_output(order, table_number=order.table.number, history=order.history)

    async def update_order_status(
        self,
        ctx: PermissionContext,
        order_id: int,
        request: UpdateOrderStatusRequest,
    ) -> OrderDetailOutput:
        """
        Manual order status override.

        Closed orders cannot be changed, and the target must differ from the
        current status. Setting PAID also records who closed the order.

        Raises:
            ForbiddenError: Missing orders:update.
            NotFoundError: Order not in this tenant.
            InvalidTransitionError / ValidationError: Rejected target.
            ConflictError: The order kept changing concurrently.
        """
        ctx.require(Resource.ORDERS, Action.UPDATE)

        orders = OrderRepository(self._db, ctx.tenant_id)
        target = request.status

        for attempt in range(1, settings.item_update_max_retries + 1):
            order = await orders.refresh(order_id)
            if order is None:
                raise NotFoundError("Order", order_id, tenant_id=ctx.tenant_id)

            current = OrderStatus(order.status)
            if current in CLOSED_ORDER_STATUSES:
                raise InvalidTransitionError("order", current.value, target.value, valid_targets=[])
            if target == current:
                raise ValidationError(f"Order is already {current.value}", order_id=order_id)

            now = self._clock()
            closing = {"closed_by_id": ctx.user_id, "closed_at": now} if target == OrderStatus.PAID else {}
            if await orders.transition(order_id, current.value, target, now, **closing):
                break

            logger.warning("Order changed concurrently, retrying", order_id=order_id, attempt=attempt)
            await self._db.rollback()
        else:
            raise ConflictError(
                ErrorMessages.CONCURRENT_UPDATE.format(entity="order"), order_id=order_id
            )

        OrderHistoryRepository(self._db, ctx.tenant_id).record(
            order_id,
            target.value,
            from_status=current.value,
            changed_by_id=ctx.user_id,
            changed_at=now,
            notes=request.notes or HistoryNotes.MANUAL_OVERRIDE,
        )
        await safe_commit(self._db)

        logger.info(
            "Order status changed manually",
            tenant_id=ctx.tenant_id,
            order_id=order_id,
            from_status=current.value,
            to_status=target.value,
            user_id=ctx.user_id,
        )
        return await self.get_order(ctx, order_id)
