"""
Standardized Pagination for list endpoints.

Usage:
    from rest_api.routers._common.pagination import Pagination, get_pagination

    @router.get("/orders")
    async def list_orders(pagination: Pagination = Depends(get_pagination)):
        filters = OrderFilters(limit=pagination.limit, offset=pagination.offset)
"""

from dataclasses import dataclass

from fastapi import Query

from shared.config.constants import Limits


@dataclass
class Pagination:
    """
    Pagination parameters with validation.

    Attributes:
        limit: Maximum items per page (1 to max_limit)
        offset: Number of items to skip
        max_limit: Maximum allowed limit
    """

    limit: int
    offset: int
    max_limit: int = Limits.MAX_PAGE_SIZE

    def __post_init__(self):
        """Validate and normalize values."""
        self.limit = min(max(1, self.limit), self.max_limit)
        self.offset = max(0, self.offset)


def get_pagination(
    limit: int = Query(
        default=Limits.DEFAULT_PAGE_SIZE,
        ge=1,
        le=Limits.MAX_PAGE_SIZE,
        description="Maximum number of items to return",
    ),
    offset: int = Query(
        default=0,
        ge=0,
        description="Number of items to skip",
    ),
) -> Pagination:
    """
    FastAPI dependency for pagination.

    Usage:
        @router.get("/items")
        async def list_items(pagination: Pagination = Depends(get_pagination)):
            ...
    """
    return Pagination(limit=limit, offset=offset)
