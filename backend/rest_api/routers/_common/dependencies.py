"""
FastAPI dependencies shared by the routers.

Each one is a seam tests can replace through ``app.dependency_overrides``.
"""

from typing import Any

from fastapi import Depends

from rest_api.services.permissions import PermissionContext
from shared.security.auth import current_user_context
from shared.security.rate_limit import KeyedRateLimiter, order_rate_limiter
from shared.utils.clock import Clock, utcnow


def get_permission_context(
    ctx: dict[str, Any] = Depends(current_user_context),
) -> PermissionContext:
    """Staff identity and permission checks from the verified access token."""
    return PermissionContext.from_claims(ctx)


def get_order_rate_limiter() -> KeyedRateLimiter:
    """Per-table limiter for order submissions."""
    return order_rate_limiter


def get_clock() -> Clock:
    """Source of "now" for the domain services."""
    return utcnow
