"""
Pytest configuration and fixtures for backend tests.

Every test gets its own SQLite database file (aiosqlite), so concurrent
sessions behave like separate connections to a real server.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from rest_api.main import app
from rest_api.models import Base
from rest_api.routers._common import get_clock, get_order_rate_limiter
from rest_api.seed import SeededRestaurant, seed_restaurant
from rest_api.services.domain import OrderService
from rest_api.services.permissions import PermissionContext
from shared.config.constants import ErrorMessages, Role
from shared.infrastructure.db import build_engine, build_session_factory, get_db
from shared.security.auth import sign_jwt
from shared.security.rate_limit import KeyedRateLimiter, limiter
from shared.utils.schemas import CreateOrderRequest, OrderItemInput


# Friday lunchtime in Madrid (13:00 local)
FIXED_NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database file per test, with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def restaurant(session_factory) -> SeededRestaurant:
    """Tenant 'casa-pepe' with KITCHEN/BAR sectors, demo menu and four tables."""
    async with session_factory() as session:
        seeded = await seed_restaurant(session, "Casa Pepe", "casa-pepe")
        await session.commit()
    return seeded


@pytest.fixture
async def other_restaurant(session_factory) -> SeededRestaurant:
    """A second tenant, for isolation checks."""
    async with session_factory() as session:
        seeded = await seed_restaurant(session, "La Otra", "la-otra", table_count=2)
        await session.commit()
    return seeded


@pytest.fixture
def order_limiter():
    """Per-table order limiter with its own in-memory counters."""
    return KeyedRateLimiter(
        limit=5,
        window_seconds=60,
        namespace="order",
        storage_uri="async+memory://",
        message=ErrorMessages.TOO_MANY_ORDERS,
    )


@pytest.fixture
def place_order(session_factory, clock):
    """
    Place an order through OrderService in its own session.

    Usage:
        response = await place_order(restaurant, [("Caña", 2), ("Paella valenciana", 1)])
    """

    async def _place(seeded: SeededRestaurant, lines, table: int = 0, **extra):
        request = CreateOrderRequest(
            items=[
                OrderItemInput(dish_id=seeded.dish_ids[name], quantity=quantity)
                for name, quantity in lines
            ],
            **extra,
        )
        async with session_factory() as session:
            service = OrderService(session, clock=clock)
            return await service.create_order(seeded.slug, seeded.qr_codes[table], request)

    return _place


@pytest.fixture
def staff():
    """Build a PermissionContext for a role in a restaurant."""

    def _staff(seeded: SeededRestaurant, role: Role, user_id: int = 7) -> PermissionContext:
        return PermissionContext(user_id=user_id, tenant_id=seeded.tenant_id, role=role)

    return _staff


@pytest.fixture
def auth_headers():
    """Bearer headers for a staff member, signed like the identity service does."""

    def _headers(tenant_id: int, role: Role, user_id: int = 7) -> dict[str, str]:
        token = sign_jwt({"sub": str(user_id), "tenant_id": tenant_id, "role": role.value})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def client(session_factory, clock, order_limiter):
    """
    HTTP client against the app, with database, clock and order limiter
    overridden. The IP limiter's counters are reset for each test.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_order_rate_limiter] = lambda: order_limiter
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
