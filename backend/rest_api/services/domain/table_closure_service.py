"""
Table Closure Domain Service.

Settles every open order of a table in one transaction and hands the table
over to cleaning. Also serves the pre-closure summary of open orders.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.models import Payment, Table
from rest_api.repositories import (
    OrderHistoryRepository,
    OrderRepository,
    PaymentRepository,
    TableRepository,
)
from rest_api.services.permissions import Action, PermissionContext, Resource
from shared.config.constants import (
    ErrorMessages,
    HistoryNotes,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TableStatus,
)
from shared.config.logging import billing_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.clock import Clock, utcnow
from shared.utils.exceptions import ConflictError, NotFoundError, PreconditionFailedError
from shared.utils.schemas import (
    ActiveTableOrdersOutput,
    ClosedOrderOutput,
    CloseTableResponse,
    TableOutput,
)

from .order_service import order_detail_output

CLOSED_VIA = "close_table"


def _table_output(table: Table, status: TableStatus | None = None) -> TableOutput:
    return TableOutput(
        id=table.id,
        number=table.number,
        name=table.name,
        status=status or table.status,
    )


class TableClosureService:
    """Domain service for closing tables and settling their orders."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self._db = db
        self._clock = clock

    async def get_active_orders_for_table(
        self, ctx: PermissionContext, table_id: int
    ) -> ActiveTableOrdersOutput:
        """Open orders of a table with their combined total."""
        ctx.require(Resource.TABLES, Action.VIEW)

        table = await TableRepository(self._db, ctx.tenant_id).find_by_id(table_id)
        if table is None:
            raise NotFoundError("Table", table_id, tenant_id=ctx.tenant_id)

        orders = await OrderRepository(self._db, ctx.tenant_id).find_open_for_table(table_id)
        return ActiveTableOrdersOutput(
            table=_table_output(table),
            orders=[order_detail_output(order, table_number=table.number) for order in orders],
            combined_total=sum((order.total for order in orders), Decimal("0.00")),
            order_count=len(orders),
        )

    async def close_table(
        self,
        ctx: PermissionContext,
        table_id: int,
        payment_method: PaymentMethod,
    ) -> CloseTableResponse:
        """
        Pay every open order of an occupied table and mark it CLEANING.

        Orders that already carry a completed payment are left as they are;
        other payments are created or completed for the order total.

        Raises:
            ForbiddenError: Missing payments:process.
            NotFoundError: Table not in this tenant.
            PreconditionFailedError: Table not occupied, or nothing to close.
            ConflictError: An order or the table changed while closing.
        """
        ctx.require(Resource.PAYMENTS, Action.PROCESS)

        tables = TableRepository(self._db, ctx.tenant_id)
        table = await tables.refresh(table_id)
        if table is None:
            raise NotFoundError("Table", table_id, tenant_id=ctx.tenant_id)
        if table.status != TableStatus.OCCUPIED.value:
            raise PreconditionFailedError(
                ErrorMessages.TABLE_NOT_OCCUPIED, table_id=table_id, status=table.status
            )

        orders_repo = OrderRepository(self._db, ctx.tenant_id)
        open_orders = await orders_repo.find_open_for_table(table_id, lock=True)
        if not open_orders:
            raise PreconditionFailedError(ErrorMessages.NO_OPEN_ORDERS, table_id=table_id)

        now = self._clock()
        payments = PaymentRepository(self._db, ctx.tenant_id)
        existing = await payments.find_by_order_ids([order.id for order in open_orders])
        history = OrderHistoryRepository(self._db, ctx.tenant_id)
        closed: list[ClosedOrderOutput] = []

        for order in open_orders:
            payment = existing.get(order.id)
            if payment is not None and payment.status == PaymentStatus.COMPLETED.value:
                continue

            details = {"closed_by": ctx.user_id, "closed_via": CLOSED_VIA}
            if payment is None:
                payments.add(
                    Payment(
                        order_id=order.id,
                        method=payment_method.value,
                        status=PaymentStatus.COMPLETED.value,
                        amount=order.total,
                        details=details,
                        paid_at=now,
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                await payments.update_where(
                    Payment.id == payment.id,
                    method=payment_method.value,
                    status=PaymentStatus.COMPLETED.value,
                    amount=order.total,
                    details=details,
                    paid_at=now,
                    updated_at=now,
                )

            paid = await orders_repo.transition(
                order.id,
                order.status,
                OrderStatus.PAID,
                now,
                closed_by_id=ctx.user_id,
                closed_at=now,
            )
            if not paid:
                raise ConflictError(
                    ErrorMessages.CONCURRENT_UPDATE.format(entity="order"), order_id=order.id
                )

            history.record(
                order.id,
                OrderStatus.PAID.value,
                from_status=order.status,
                changed_by_id=ctx.user_id,
                changed_at=now,
                notes=HistoryNotes.TABLE_CLOSED.format(method=payment_method.value),
            )
            closed.append(
                ClosedOrderOutput(id=order.id, order_number=order.order_number, total=order.total)
            )

        if not await tables.transition(table_id, TableStatus.OCCUPIED, TableStatus.CLEANING):
            raise ConflictError(
                ErrorMessages.CONCURRENT_UPDATE.format(entity="table"), table_id=table_id
            )
        await safe_commit(self._db)

        logger.info(
            "Table closed",
            tenant_id=ctx.tenant_id,
            table_id=table_id,
            payment_method=payment_method.value,
            closed_order_count=len(closed),
            total=str(sum((entry.total for entry in closed), Decimal("0.00"))),
            user_id=ctx.user_id,
        )
        return CloseTableResponse(
            table=_table_output(table, TableStatus.CLEANING),
            closed_order_count=len(closed),
            closed_orders=closed,
        )
