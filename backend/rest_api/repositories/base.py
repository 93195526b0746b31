"""
Base Repository implementation.

A repository is bound to one tenant at construction time. Every SELECT it
builds and every UPDATE it issues carries the tenant clause, so there is no
code path that reads or writes another tenant's rows.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.constants import Limits


ModelT = TypeVar("ModelT")


@dataclass
class RepositoryFilters:
    """Pagination filters for list queries."""

    limit: int = Limits.DEFAULT_PAGE_SIZE
    offset: int = 0

    def __post_init__(self):
        """Clamp to sane bounds."""
        self.limit = min(max(1, self.limit), Limits.MAX_PAGE_SIZE)
        self.offset = max(0, self.offset)


class TenantScopedRepository(ABC, Generic[ModelT]):
    """
    Abstract repository scoped to a single tenant.

    Subclasses provide ``model``; they may override ``_scope`` when tenant
    ownership needs more than the row's own ``tenant_id`` column.
    """

    def __init__(self, db: AsyncSession, tenant_id: int):
        self._db = db
        self.tenant_id = tenant_id

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    def _scope(self) -> ColumnElement[bool]:
        """Tenant match condition applied to every statement."""
        return self.model.tenant_id == self.tenant_id

    def select(self, *criteria: Any) -> Select:
        """SELECT of the model restricted to this tenant."""
        return select(self.model).where(self._scope(), *criteria)

    async def find_by_id(self, entity_id: int, *options: Any) -> ModelT | None:
        """Find entity by ID within the tenant, optionally with loader options."""
        query = self.select(self.model.id == entity_id)
        if options:
            query = query.options(*options)
        return await self._db.scalar(query)

    def add(self, entity: ModelT) -> ModelT:
        """Stage a new entity, stamping it with this repository's tenant."""
        entity.tenant_id = self.tenant_id
        self._db.add(entity)
        return entity

    async def update_where(self, *criteria: Any, **values: Any) -> int:
        """
        Conditional UPDATE restricted to this tenant.

        Returns:
            Number of rows affected; callers compare it with what they expected
            instead of reading the row first.
        """
        stmt = (
            update(self.model)
            .where(self._scope(), *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        return result.rowcount

    async def refresh(self, entity_id: int, *options: Any) -> ModelT | None:
        """Re-read an entity, overwriting any stale state in the session."""
        query = self.select(self.model.id == entity_id).execution_options(populate_existing=True)
        if options:
            query = query.options(*options)
        return await self._db.scalar(query)
