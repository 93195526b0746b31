"""
Services module for business logic.

- domain/: Application services (order intake, prep transitions, consoles,
  table closure) and the pure pricing/aggregation rules they share
- permissions/: Role -> resource -> action matrix and the request context

Usage:
    from rest_api.services.domain import OrderService
    service = OrderService(db)
    response = await service.create_order(tenant_slug, qr_code, body)
"""

from .domain import (
    ItemStatusService,
    OrderService,
    PrepConsoleService,
    TableClosureService,
)
from .permissions import Action, PermissionContext, Resource

__all__ = [
    # Domain services
    "OrderService",
    "ItemStatusService",
    "PrepConsoleService",
    "TableClosureService",
    # Permissions
    "PermissionContext",
    "Resource",
    "Action",
]
