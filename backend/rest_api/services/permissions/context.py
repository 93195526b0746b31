"""
Permission Context - entry point for permission checks inside services.
"""

from typing import Any, Callable

from shared.config.constants import MANAGEMENT_ROLES, SECTOR_BOUND_ROLES, Role
from shared.config.logging import audit_access_denied
from shared.utils.exceptions import ForbiddenError, InsufficientRoleError, SectorAccessError

from .matrix import Action, Resource, has_permission

PermissionCheck = Callable[[Role, Resource, Action], bool]


def can_access_sector(role: Role, sector_code: str) -> bool:
    """
    Sector ownership rule for prep consoles.

    ADMIN/SUPER_ADMIN reach every sector, COOK only KITCHEN, BARTENDER only
    BAR, and every other role none.
    """
    if role in MANAGEMENT_ROLES:
        return True
    bound_sector = SECTOR_BOUND_ROLES.get(role)
    return bound_sector is not None and bound_sector == sector_code.upper()


class PermissionContext:
    """
    Staff identity plus the permission checks that apply to it.

    Usage:
        perms = PermissionContext.from_claims(ctx)
        perms.require(Resource.PAYMENTS, Action.PROCESS)
        perms.require_sector("KITCHEN")
    """

    def __init__(
        self,
        user_id: int,
        tenant_id: int,
        role: Role,
        check: PermissionCheck = has_permission,
    ):
        self.user_id = user_id
        self.tenant_id = tenant_id
        self.role = role
        self._check = check

    @classmethod
    def from_claims(cls, claims: dict[str, Any], check: PermissionCheck = has_permission) -> "PermissionContext":
        """Build from verified JWT claims (sub, tenant_id, role)."""
        return cls(
            user_id=int(claims["sub"]),
            tenant_id=claims["tenant_id"],
            role=Role(claims["role"]),
            check=check,
        )

    @property
    def is_management(self) -> bool:
        return self.role in MANAGEMENT_ROLES

    def can(self, resource: Resource, action: Action) -> bool:
        return self._check(self.role, resource, action)

    def require(self, resource: Resource, action: Action) -> None:
        """Raise ForbiddenError unless the role holds ``action`` on ``resource``."""
        if not self.can(resource, action):
            audit_access_denied(
                self.user_id,
                self.role.value,
                reason="permission",
                resource=resource.value,
                action=action.value,
            )
            raise ForbiddenError(
                f"{action.value} {resource.value}",
                user_id=self.user_id,
                role=self.role.value,
            )

    def require_sector(self, sector_code: str) -> None:
        """Raise SectorAccessError unless the role may work the given sector."""
        if not can_access_sector(self.role, sector_code):
            audit_access_denied(
                self.user_id,
                self.role.value,
                reason="sector",
                sector_code=sector_code,
            )
            raise SectorAccessError(self.role.value, sector_code, user_id=self.user_id)

    def require_management(self) -> None:
        """Raise InsufficientRoleError unless ADMIN or SUPER_ADMIN."""
        if not self.is_management:
            audit_access_denied(self.user_id, self.role.value, reason="role")
            raise InsufficientRoleError(
                sorted(role.value for role in MANAGEMENT_ROLES),
                user_id=self.user_id,
            )
