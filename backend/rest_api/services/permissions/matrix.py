"""
Static role -> resource -> action permission matrix.

The matrix is an immutable mapping built once at import time; ``has_permission``
is a pure lookup over it and is what the request guards consume.
"""

from enum import Enum
from types import MappingProxyType
from typing import Final, Mapping

from shared.config.constants import Role


class Resource(str, Enum):
    """Protected resource families."""

    INVENTORY = "inventory"
    MENU = "menu"
    ORDERS = "orders"
    PREP = "prep"
    TABLES = "tables"
    USERS = "users"
    PAYMENTS = "payments"
    SETTINGS = "settings"


class Action(str, Enum):
    """Actions a role may perform on a resource."""

    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PROCESS = "process"
    REFUND = "refund"


PermissionMatrix = Mapping[Role, Mapping[Resource, frozenset[Action]]]

# Management roles hold every action on every resource
_FULL_ACCESS: Final[dict[Resource, frozenset[Action]]] = {
    resource: frozenset(Action) for resource in Resource
}

_PREP_STAFF: Final[dict[Resource, frozenset[Action]]] = {
    Resource.INVENTORY: frozenset({Action.VIEW}),
    Resource.MENU: frozenset({Action.VIEW}),
    Resource.ORDERS: frozenset({Action.VIEW}),
    Resource.PREP: frozenset({Action.VIEW, Action.UPDATE}),
}


def _freeze(matrix: dict[Role, dict[Resource, frozenset[Action]]]) -> PermissionMatrix:
    return MappingProxyType({role: MappingProxyType(dict(grants)) for role, grants in matrix.items()})


PERMISSIONS: Final[PermissionMatrix] = _freeze({
    Role.SUPER_ADMIN: _FULL_ACCESS,
    Role.ADMIN: _FULL_ACCESS,
    Role.WAITER: {
        Resource.MENU: frozenset({Action.VIEW}),
        Resource.ORDERS: frozenset({Action.VIEW, Action.CREATE, Action.UPDATE}),
        Resource.TABLES: frozenset({Action.VIEW, Action.UPDATE}),
        Resource.PAYMENTS: frozenset({Action.VIEW, Action.PROCESS}),
    },
    Role.COOK: _PREP_STAFF,
    Role.BARTENDER: _PREP_STAFF,
})


def has_permission(
    role: Role,
    resource: Resource,
    action: Action,
    matrix: PermissionMatrix = PERMISSIONS,
) -> bool:
    """Return True if ``role`` may perform ``action`` on ``resource``."""
    return action in matrix.get(role, {}).get(resource, frozenset())
