"""
Item Status Domain Service.

Moves order items through the preparation state machine from the prep
consoles: one item at a time, several items at once, or a whole ticket
(the items of one order in one sector). Every change re-derives the order
status in the same transaction, under a row lock on the order.
"""

from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.models import OrderItem
from rest_api.repositories import (
    OrderHistoryRepository,
    OrderItemRepository,
    OrderRepository,
    PrepSectorRepository,
)
from rest_api.services.permissions import Action, PermissionContext, Resource
from shared.config.constants import (
    BULK_ITEM_PREDECESSORS,
    ITEM_TRANSITIONS,
    ErrorMessages,
    HistoryNotes,
    OrderItemStatus,
    OrderStatus,
)
from shared.config.logging import prep_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.utils.clock import Clock, utcnow
from shared.utils.exceptions import (
    ConflictError,
    InvalidBulkTransitionError,
    InvalidTransitionError,
    NotFoundError,
    PrepSectorNotFoundError,
    ValidationError,
)
from shared.utils.kitchen_schemas import (
    BulkItemStatusResponse,
    ItemStatusOutput,
    TicketActionResponse,
)

from .order_aggregation import OrderStatusAggregator


def _concurrent_update(entity: str, **log_context) -> ConflictError:
    return ConflictError(ErrorMessages.CONCURRENT_UPDATE.format(entity=entity), **log_context)


class ItemStatusService:
    """
    Domain service for order item transitions.

    Authorization always runs before the transition table: the caller must
    hold prep:update and be allowed on the item's sector; cancelling also
    needs a management role.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self._db = db
        self._clock = clock

    def _authorize_item(self, ctx: PermissionContext, item: OrderItem) -> None:
        # Items without a sector are only reachable by management
        if item.prep_sector is None:
            ctx.require_management()
        else:
            ctx.require_sector(item.prep_sector.code)

    async def update_item_status(
        self,
        ctx: PermissionContext,
        item_id: int,
        target: OrderItemStatus,
    ) -> ItemStatusOutput:
        """
        Move one item to ``target``.

        The parent order is locked before the write, which is a compare-and-set
        on the status read; if another writer got there first the item is
        re-read and the transition re-validated.

        Raises:
            ForbiddenError: Missing permission, foreign sector, or cancel without management role.
            NotFoundError: Item not in this tenant (or deleted meanwhile).
            InvalidTransitionError: ``target`` not reachable from the current status.
            ConflictError: Retries exhausted.
        """
        ctx.require(Resource.PREP, Action.UPDATE)

        orders = OrderRepository(self._db, ctx.tenant_id)
        items = OrderItemRepository(self._db, ctx.tenant_id)
        max_retries = settings.item_update_max_retries

        for attempt in range(1, max_retries + 1):
            item = await items.find_with_relations(item_id)
            if item is None:
                raise NotFoundError("Order item", item_id, tenant_id=ctx.tenant_id)

            self._authorize_item(ctx, item)
            if target == OrderItemStatus.CANCELLED:
                ctx.require_management()

            current = OrderItemStatus(item.status)
            allowed = ITEM_TRANSITIONS[current]
            if target not in allowed:
                raise InvalidTransitionError(
                    "order item",
                    current.value,
                    target.value,
                    valid_targets=sorted(status.value for status in allowed),
                    item_id=item_id,
                )

            order_id, dish_name = item.order_id, item.dish.name
            await orders.lock(order_id)
            now = self._clock()
            if await items.transition(item_id, current.value, target, now):
                break

            logger.warning("Item changed concurrently, retrying", item_id=item_id, attempt=attempt)
            await self._db.rollback()
        else:
            raise _concurrent_update("item", item_id=item_id, tenant_id=ctx.tenant_id)

        OrderHistoryRepository(self._db, ctx.tenant_id).record(
            order_id,
            target.value,
            from_status=current.value,
            order_item_id=item_id,
            changed_by_id=ctx.user_id,
            changed_at=now,
            notes=HistoryNotes.ITEM_STATUS.format(
                item_id=item_id,
                dish=dish_name,
                from_status=current.value,
                to_status=target.value,
            ),
        )
        order_status = await OrderStatusAggregator(self._db, ctx.tenant_id).apply(
            order_id, changed_by_id=ctx.user_id, now=now
        )
        await safe_commit(self._db)

        logger.info(
            "Item status changed",
            tenant_id=ctx.tenant_id,
            item_id=item_id,
            order_id=order_id,
            from_status=current.value,
            to_status=target.value,
            order_status=order_status.value,
            user_id=ctx.user_id,
        )
        return ItemStatusOutput(
            id=item_id,
            order_id=order_id,
            status=target,
            order_status=order_status,
        )

    async def bulk_update_item_status(
        self,
        ctx: PermissionContext,
        item_ids: Sequence[int],
        target: OrderItemStatus,
    ) -> BulkItemStatusResponse:
        """
        Move several items forward together, all or nothing.

        Only the forward steps are allowed in bulk, and every item must be in
        the single predecessor status of ``target``.

        Raises:
            ValidationError: ``target`` cannot be set in bulk.
            NotFoundError: Some ids unknown in this tenant.
            InvalidBulkTransitionError: Some items are not in the predecessor status.
            ConflictError: Retries exhausted.
        """
        ctx.require(Resource.PREP, Action.UPDATE)

        required = BULK_ITEM_PREDECESSORS.get(target)
        if required is None:
            allowed = ", ".join(status.value for status in BULK_ITEM_PREDECESSORS)
            raise ValidationError(
                f"Items cannot be moved to {target.value} in bulk. Valid targets: {allowed}",
                to_status=target.value,
            )

        ids = list(dict.fromkeys(item_ids))
        if not ids:
            raise ValidationError("At least one item id required")

        orders = OrderRepository(self._db, ctx.tenant_id)
        items = OrderItemRepository(self._db, ctx.tenant_id)
        max_retries = settings.item_update_max_retries

        for attempt in range(1, max_retries + 1):
            found = await items.find_many_with_sector(ids)
            if len(found) != len(ids):
                missing = sorted(set(ids) - {item.id for item in found})
                raise NotFoundError(
                    "Order item",
                    detail=ErrorMessages.ITEMS_NOT_FOUND,
                    item_ids=missing,
                    tenant_id=ctx.tenant_id,
                )

            for item in found:
                self._authorize_item(ctx, item)

            offending = sorted(item.id for item in found if item.status != required.value)
            if offending:
                raise InvalidBulkTransitionError(target.value, required.value, offending)

            order_ids = sorted({item.order_id for item in found})
            await orders.lock_many(order_ids)
            now = self._clock()
            affected = await items.bulk_transition(ids, required, target, now)
            if affected == len(ids):
                break

            # Partial match: undo it and read again
            logger.warning(
                "Bulk item update matched fewer rows, retrying",
                expected=len(ids),
                affected=affected,
                attempt=attempt,
            )
            await self._db.rollback()
        else:
            raise _concurrent_update("items", item_ids=ids, tenant_id=ctx.tenant_id)

        history = OrderHistoryRepository(self._db, ctx.tenant_id)
        order_of = {item.id: item.order_id for item in found}
        for item_id in ids:
            history.record(
                order_of[item_id],
                target.value,
                from_status=required.value,
                order_item_id=item_id,
                changed_by_id=ctx.user_id,
                changed_at=now,
                notes=HistoryNotes.ITEMS_BULK.format(status=target.value),
            )

        aggregator = OrderStatusAggregator(self._db, ctx.tenant_id)
        for order_id in order_ids:
            await aggregator.apply(order_id, changed_by_id=ctx.user_id, now=now)
        await safe_commit(self._db)

        logger.info(
            "Items status changed in bulk",
            tenant_id=ctx.tenant_id,
            item_count=len(ids),
            order_ids=order_ids,
            to_status=target.value,
            user_id=ctx.user_id,
        )
        return BulkItemStatusResponse(updated_count=len(ids))

    # =========================================================================
    # Per-ticket console actions
    # =========================================================================

    async def mark_ticket_ready(
        self, ctx: PermissionContext, order_id: int, sector_code: str
    ) -> TicketActionResponse:
        """IN_PROGRESS -> READY for the order's items in the sector."""
        return await self._ticket_action(
            ctx, order_id, sector_code, OrderItemStatus.IN_PROGRESS, OrderItemStatus.READY
        )

    async def clear_ticket(
        self, ctx: PermissionContext, order_id: int, sector_code: str
    ) -> TicketActionResponse:
        """READY -> SERVED for the order's items in the sector."""
        return await self._ticket_action(
            ctx, order_id, sector_code, OrderItemStatus.READY, OrderItemStatus.SERVED
        )

    async def _ticket_action(
        self,
        ctx: PermissionContext,
        order_id: int,
        sector_code: str,
        from_status: OrderItemStatus,
        to_status: OrderItemStatus,
    ) -> TicketActionResponse:
        ctx.require(Resource.PREP, Action.UPDATE)

        code = sector_code.strip().upper()
        ctx.require_sector(code)

        sector = await PrepSectorRepository(self._db, ctx.tenant_id).find_by_code(code)
        if sector is None:
            raise PrepSectorNotFoundError(code, tenant_id=ctx.tenant_id)
        sector_id, sector_name = sector.id, sector.name

        orders = OrderRepository(self._db, ctx.tenant_id)
        items = OrderItemRepository(self._db, ctx.tenant_id)
        max_retries = settings.item_update_max_retries

        for attempt in range(1, max_retries + 1):
            order = await orders.lock(order_id)
            if order is None:
                raise NotFoundError("Order", order_id, tenant_id=ctx.tenant_id)
            order_status = order.status

            matching = await items.find_for_ticket(order_id, sector_id, from_status)
            if not matching:
                raise ValidationError(
                    f"No items in {from_status.value} status to mark as {to_status.value}",
                    order_id=order_id,
                    sector_code=code,
                )

            ids = [item.id for item in matching]
            now = self._clock()
            if await items.bulk_transition(ids, from_status, to_status, now) == len(ids):
                break

            logger.warning("Ticket changed concurrently, retrying", order_id=order_id, attempt=attempt)
            await self._db.rollback()
        else:
            raise _concurrent_update("ticket", order_id=order_id, sector_code=code)

        OrderHistoryRepository(self._db, ctx.tenant_id).record(
            order_id,
            order_status,
            from_status=order_status,
            changed_by_id=ctx.user_id,
            changed_at=now,
            notes=HistoryNotes.TICKET_BULK.format(
                count=len(ids), status=to_status.value, sector=sector_name
            ),
        )
        new_status = await OrderStatusAggregator(self._db, ctx.tenant_id).apply(
            order_id, changed_by_id=ctx.user_id, now=now
        )
        await safe_commit(self._db)

        logger.info(
            "Ticket items moved",
            tenant_id=ctx.tenant_id,
            order_id=order_id,
            sector_code=code,
            item_count=len(ids),
            to_status=to_status.value,
            order_status=new_status.value,
            user_id=ctx.user_id,
        )
        return TicketActionResponse(
            order_id=order_id,
            updated_count=len(ids),
            order_status=OrderStatus(new_status),
        )
