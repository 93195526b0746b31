"""
Catalog Repositories: Dish, PrepSector.
Read-only inputs to order creation and the prep consoles.
"""

from typing import Sequence

from sqlalchemy import func, select

from rest_api.models import Category, Dish, PrepSector
from rest_api.repositories.base import TenantScopedRepository


class DishRepository(TenantScopedRepository[Dish]):
    """Dishes of one tenant."""

    @property
    def model(self) -> type[Dish]:
        return Dish

    async def find_orderable(self, dish_ids: Sequence[int]) -> dict[int, tuple[Dish, int | None]]:
        """
        Batch-load dishes that can be ordered right now.

        Only available, in-stock dishes of this tenant are returned, each with
        the prep sector of its category.

        Returns:
            {dish_id: (dish, prep_sector_id)}
        """
        if not dish_ids:
            return {}

        result = await self._db.execute(
            select(Dish, Category.prep_sector_id)
            .join(Category, Category.id == Dish.category_id)
            .where(
                self._scope(),
                Category.tenant_id == self.tenant_id,
                Dish.id.in_(set(dish_ids)),
                Dish.is_available.is_(True),
                Dish.is_in_stock.is_(True),
            )
        )
        return {dish.id: (dish, prep_sector_id) for dish, prep_sector_id in result.all()}


class PrepSectorRepository(TenantScopedRepository[PrepSector]):
    """Prep sectors of one tenant."""

    @property
    def model(self) -> type[PrepSector]:
        return PrepSector

    async def find_by_code(self, code: str) -> PrepSector | None:
        """Active sector by code (case-insensitive)."""
        return await self._db.scalar(
            self.select(
                func.upper(PrepSector.code) == code.upper(),
                PrepSector.is_active.is_(True),
            )
        )
