"""
Table Repository.
"""

from shared.config.constants import TableStatus
from rest_api.models import Table
from rest_api.repositories.base import TenantScopedRepository


class TableRepository(TenantScopedRepository[Table]):
    """Tables of one tenant."""

    @property
    def model(self) -> type[Table]:
        return Table

    async def find_active_by_qr_code(self, qr_code: str) -> Table | None:
        return await self._db.scalar(
            self.select(Table.qr_code == qr_code, Table.is_active.is_(True))
        )

    async def transition(self, table_id: int, from_status: TableStatus, to_status: TableStatus) -> bool:
        """
        Move a table between statuses only if it is still in ``from_status``.

        Returns:
            True when the row was updated.
        """
        affected = await self.update_where(
            Table.id == table_id,
            Table.status == from_status.value,
            status=to_status.value,
        )
        return affected == 1
