"""
Payment Repository.
"""

from typing import Sequence

from rest_api.models import Payment
from rest_api.repositories.base import TenantScopedRepository


class PaymentRepository(TenantScopedRepository[Payment]):
    """Payments of one tenant."""

    @property
    def model(self) -> type[Payment]:
        return Payment

    async def find_by_order_ids(self, order_ids: Sequence[int]) -> dict[int, Payment]:
        """Payments keyed by order id (at most one per order)."""
        if not order_ids:
            return {}
        result = await self._db.execute(self.select(Payment.order_id.in_(order_ids)))
        return {payment.order_id: payment for payment in result.scalars().all()}
