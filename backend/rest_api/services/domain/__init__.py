"""
Domain Services - application layer.

Services contain business logic and orchestrate operations. They use
Repositories for data access and return pydantic output schemas.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access, tenant scoped)
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import ItemStatusService

    # In router
    service = ItemStatusService(db)
    result = await service.update_item_status(perms, item_id, body.status)
"""

from .item_status_service import ItemStatusService
from .order_aggregation import OrderStatusAggregator, derive_order_status
from .order_sequence import OrderSequenceAllocator, run_with_order_number_retry
from .order_service import OrderService
from .prep_console_service import PrepConsoleService
from .pricing import PriceBreakdown, calculate_totals
from .table_closure_service import TableClosureService

__all__ = [
    # Pure rules
    "calculate_totals",
    "PriceBreakdown",
    "derive_order_status",
    # Building blocks
    "OrderSequenceAllocator",
    "run_with_order_number_retry",
    "OrderStatusAggregator",
    # Services
    "OrderService",
    "ItemStatusService",
    "PrepConsoleService",
    "TableClosureService",
]
