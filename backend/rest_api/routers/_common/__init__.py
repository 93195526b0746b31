"""
Common utilities shared across routers.
"""

from .dependencies import get_clock, get_order_rate_limiter, get_permission_context
from .pagination import Pagination, get_pagination

__all__ = [
    # Dependencies
    "get_permission_context",
    "get_order_rate_limiter",
    "get_clock",
    # Pagination
    "Pagination",
    "get_pagination",
]
