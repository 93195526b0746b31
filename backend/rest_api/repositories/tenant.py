"""
Tenant Repository.

Tenants are the scope root, so this repository is the one place that looks
rows up without a tenant clause: by public slug, or by the id already taken
from a verified token.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rest_api.models import Tenant, TenantSettings


class TenantRepository:
    """Read access to tenants and their settings."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def find_active_by_slug(self, slug: str) -> Tenant | None:
        return await self._db.scalar(
            select(Tenant).where(Tenant.slug == slug, Tenant.is_active.is_(True))
        )

    async def find_settings(self, tenant_id: int) -> TenantSettings | None:
        return await self._db.scalar(
            select(TenantSettings).where(TenantSettings.tenant_id == tenant_id)
        )

    async def lock(self, tenant_id: int) -> Tenant | None:
        """
        SELECT ... FOR UPDATE on the tenant row.

        Serializes order-number allocation per tenant; concurrent creators
        wait here until the holder commits. No-op on SQLite, whose write
        transactions are already exclusive.
        """
        return await self._db.scalar(
            select(Tenant).where(Tenant.id == tenant_id).with_for_update()
        )
