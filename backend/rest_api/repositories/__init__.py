"""
Repository Pattern implementation.
Centralizes data access: every repository is bound to one tenant.

Usage:
    from rest_api.repositories import OrderRepository, OrderFilters

    repo = OrderRepository(db, tenant_id=1)
    orders = await repo.find_all(OrderFilters(status=OrderStatus.READY))
    order = await repo.find_detail(123)
"""

from .base import RepositoryFilters, TenantScopedRepository
from .billing import PaymentRepository
from .catalog import DishRepository, PrepSectorRepository
from .order import OrderFilters, OrderHistoryRepository, OrderItemRepository, OrderRepository
from .table import TableRepository
from .tenant import TenantRepository

__all__ = [
    # Base
    "TenantScopedRepository",
    "RepositoryFilters",
    # Tenant
    "TenantRepository",
    # Catalog
    "DishRepository",
    "PrepSectorRepository",
    # Table
    "TableRepository",
    # Order
    "OrderRepository",
    "OrderFilters",
    "OrderItemRepository",
    "OrderHistoryRepository",
    # Billing
    "PaymentRepository",
]
