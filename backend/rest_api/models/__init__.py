"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class, TimestampMixin and column types
- tenant: Tenant, TenantSettings
- sector: PrepSector
- catalog: Category, Dish
- table: Table
- order: Order, OrderItem, OrderStatusHistory
- billing: Payment
"""

from .base import Base, TimestampMixin
from .tenant import Tenant, TenantSettings
from .sector import PrepSector
from .catalog import Category, Dish
from .table import Table
from .order import Order, OrderItem, OrderStatusHistory
from .billing import Payment

__all__ = [
    "Base",
    "TimestampMixin",
    "Tenant",
    "TenantSettings",
    "PrepSector",
    "Category",
    "Dish",
    "Table",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Payment",
]
