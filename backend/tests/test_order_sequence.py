"""
Tests for daily order number allocation under concurrency.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rest_api.models import Order
from rest_api.services.domain.order_sequence import (
    is_order_number_collision,
    run_with_order_number_retry,
)
from shared.utils.exceptions import ConflictError

SQLITE_COLLISION = (
    "UNIQUE constraint failed: customer_order.tenant_id, "
    "customer_order.business_date, customer_order.order_number"
)
POSTGRES_COLLISION = (
    'duplicate key value violates unique constraint "uq_order_tenant_day_number"'
)


def integrity_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT INTO customer_order ...", {}, Exception(message))


class TestCollisionDetection:
    @pytest.mark.parametrize("message", [SQLITE_COLLISION, POSTGRES_COLLISION])
    def test_detects_order_number_collision(self, message):
        assert is_order_number_collision(integrity_error(message))

    def test_ignores_other_violations(self):
        error = integrity_error("FOREIGN KEY constraint failed")
        assert not is_order_number_collision(error)


class TestRetryWrapper:
    """Tests for run_with_order_number_retry."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        """Should roll back and retry after a collision."""
        db = AsyncMock()
        attempt = AsyncMock(side_effect=[integrity_error(SQLITE_COLLISION), "created"])

        result = await run_with_order_number_retry(db, attempt, max_retries=3, backoff=0)

        assert result == "created"
        assert attempt.await_count == 2
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_gives_up_with_conflict(self):
        """Should raise ConflictError after exhausting every attempt."""
        db = AsyncMock()
        attempt = AsyncMock(side_effect=integrity_error(POSTGRES_COLLISION))

        with pytest.raises(ConflictError) as exc_info:
            await run_with_order_number_retry(db, attempt, max_retries=3, backoff=0)

        assert exc_info.value.status_code == 409
        assert attempt.await_count == 3
        assert db.rollback.await_count == 3

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self):
        """Should not retry violations unrelated to numbering."""
        db = AsyncMock()
        attempt = AsyncMock(side_effect=integrity_error("NOT NULL constraint failed"))

        with pytest.raises(IntegrityError):
            await run_with_order_number_retry(db, attempt, max_retries=3, backoff=0)

        assert attempt.await_count == 1
        db.rollback.assert_awaited_once()


class TestConcurrentAllocation:
    """N simultaneous orders for one tenant get 1..N with no gaps or duplicates."""

    @pytest.mark.asyncio
    async def test_twenty_concurrent_orders(self, db_session, restaurant, place_order):
        lines = [("Caña", 1)]
        tables = len(restaurant.qr_codes)

        responses = await asyncio.gather(
            *(place_order(restaurant, lines, table=index % tables) for index in range(20))
        )

        assert sorted(response.order_number for response in responses) == list(range(1, 21))

        stored = (
            await db_session.scalars(
                select(Order.order_number).where(Order.tenant_id == restaurant.tenant_id)
            )
        ).all()
        assert sorted(stored) == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_concurrent_tenants_do_not_interfere(
        self, restaurant, other_restaurant, place_order
    ):
        lines = [("Caña", 1)]

        responses = await asyncio.gather(
            *(place_order(restaurant, lines) for _ in range(5)),
            *(place_order(other_restaurant, lines) for _ in range(5)),
        )

        assert sorted(r.order_number for r in responses[:5]) == [1, 2, 3, 4, 5]
        assert sorted(r.order_number for r in responses[5:]) == [1, 2, 3, 4, 5]
