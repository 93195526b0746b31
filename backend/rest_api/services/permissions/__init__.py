"""
Permission checks for staff operations.

Usage:
    from rest_api.services.permissions import PermissionContext, Resource, Action

    perms = PermissionContext.from_claims(ctx)
    perms.require(Resource.ORDERS, Action.UPDATE)
"""

from .matrix import PERMISSIONS, Action, Resource, has_permission
from .context import PermissionContext, can_access_sector

__all__ = [
    "PERMISSIONS",
    "Action",
    "Resource",
    "has_permission",
    "PermissionContext",
    "can_access_sector",
]
