"""
Centralized constants for the backend application.
Avoids magic strings for roles, statuses and transition tables.

Usage:
    from shared.config.constants import OrderItemStatus, ITEM_TRANSITIONS

    if target in ITEM_TRANSITIONS[current]:
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Staff Roles
# =============================================================================


class Role(str, Enum):
    """Staff role carried in the access token."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    WAITER = "WAITER"
    COOK = "COOK"
    BARTENDER = "BARTENDER"


# Roles that can act on any prep sector and cancel items
MANAGEMENT_ROLES: Final[frozenset[Role]] = frozenset({Role.SUPER_ADMIN, Role.ADMIN})


# =============================================================================
# Entity Status Enums
# =============================================================================


class OrderStatus(str, Enum):
    """Order-level status."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    DELIVERED = "DELIVERED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


# Orders in these states are closed: no aggregation, no console, no closure
CLOSED_ORDER_STATUSES: Final[frozenset[OrderStatus]] = frozenset(
    {OrderStatus.PAID, OrderStatus.CANCELLED}
)


class OrderItemStatus(str, Enum):
    """Item-level status, independent from the parent order."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    READY = "READY"
    SERVED = "SERVED"
    CANCELLED = "CANCELLED"


# Statuses shown on the prep consoles
CONSOLE_ITEM_STATUSES: Final[tuple[OrderItemStatus, ...]] = (
    OrderItemStatus.PENDING,
    OrderItemStatus.IN_PROGRESS,
    OrderItemStatus.READY,
)


class TableStatus(str, Enum):
    """Table occupancy status."""

    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    CLEANING = "CLEANING"


class PaymentMethod(str, Enum):
    """Payment method used to close a table."""

    CASH = "CASH"
    CARD = "CARD"
    BIZUM = "BIZUM"


class PaymentStatus(str, Enum):
    """Payment record status."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# =============================================================================
# Prep Sectors
# =============================================================================


class SectorCode:
    """Well-known prep sector codes."""

    KITCHEN: Final[str] = "KITCHEN"
    BAR: Final[str] = "BAR"


# Roles restricted to a single sector (others are either global or excluded)
SECTOR_BOUND_ROLES: Final[dict[Role, str]] = {
    Role.COOK: SectorCode.KITCHEN,
    Role.BARTENDER: SectorCode.BAR,
}


# =============================================================================
# Status Transitions
# =============================================================================

# Valid item status transitions (from -> allowed targets)
# READY -> IN_PROGRESS is the back-correction path for the prep console
ITEM_TRANSITIONS: Final[dict[OrderItemStatus, frozenset[OrderItemStatus]]] = {
    OrderItemStatus.PENDING: frozenset({OrderItemStatus.IN_PROGRESS, OrderItemStatus.CANCELLED}),
    OrderItemStatus.IN_PROGRESS: frozenset({OrderItemStatus.READY, OrderItemStatus.CANCELLED}),
    OrderItemStatus.READY: frozenset(
        {OrderItemStatus.SERVED, OrderItemStatus.IN_PROGRESS, OrderItemStatus.CANCELLED}
    ),
    OrderItemStatus.SERVED: frozenset({OrderItemStatus.CANCELLED}),
    OrderItemStatus.CANCELLED: frozenset(),
}

# Bulk transitions: target -> the single status every item must currently have
BULK_ITEM_PREDECESSORS: Final[dict[OrderItemStatus, OrderItemStatus]] = {
    OrderItemStatus.IN_PROGRESS: OrderItemStatus.PENDING,
    OrderItemStatus.READY: OrderItemStatus.IN_PROGRESS,
    OrderItemStatus.SERVED: OrderItemStatus.READY,
}


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Quantity limits
    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99

    # Items per order
    MAX_ORDER_LINES: Final[int] = 50

    # String lengths
    MAX_ITEM_NOTES_LENGTH: Final[int] = 200
    MAX_CUSTOMER_NOTES_LENGTH: Final[int] = 500

    # Tip percentage bounds
    MIN_TIP_PERCENTAGE: Final[int] = 0
    MAX_TIP_PERCENTAGE: Final[int] = 100

    # Pagination defaults
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 100

    # Bulk item updates
    MAX_BULK_ITEMS: Final[int] = 100

    # History entries returned to customers
    PUBLIC_HISTORY_ENTRIES: Final[int] = 10

    # Trailing window for prep sector statistics
    STATS_WINDOW_HOURS: Final[int] = 24


# =============================================================================
# Tenant Settings Fallbacks
# =============================================================================


class SettingsDefaults:
    """Values used when a tenant has no settings row."""

    VAT_RATE: Final[str] = "10.00"
    REDUCED_VAT_RATE: Final[str] = "4.00"
    TIP_ENABLED: Final[bool] = True
    TIP_PERCENTAGES: Final[tuple[int, ...]] = (5, 10, 15)
    CURRENCY: Final[str] = "EUR"
    TIMEZONE: Final[str] = "Europe/Madrid"
    LANGUAGE: Final[str] = "es"


# =============================================================================
# History Notes
# =============================================================================


class HistoryNotes:
    """Free-text notes written to the order status history."""

    ORDER_PLACED: Final[str] = "Order placed by customer"
    ITEM_STATUS: Final[str] = "Item #{item_id} ({dish}) {from_status} -> {to_status}"
    TICKET_BULK: Final[str] = "{count} items marked as {status} in {sector}"
    ITEMS_BULK: Final[str] = "Bulk update to {status}"
    AGGREGATED: Final[str] = "Derived from item statuses"
    MANUAL_OVERRIDE: Final[str] = "Status changed manually"
    TABLE_CLOSED: Final[str] = "Table closed - Payment via {method}"


# =============================================================================
# Error Messages
# =============================================================================


class ErrorMessages:
    """Standardized error messages."""

    # Auth errors
    NOT_AUTHENTICATED: Final[str] = "Not authenticated"
    INVALID_TOKEN: Final[str] = "Invalid token"
    TOKEN_EXPIRED: Final[str] = "Token has expired"

    # Order assembly
    EMPTY_ORDER: Final[str] = "At least one item required"
    DISHES_UNAVAILABLE: Final[str] = "Some dishes are no longer available: {ids}"
    TOO_MANY_ORDERS: Final[str] = "Too many orders. Please wait a moment before ordering again."
    ORDER_NUMBER_CONFLICT: Final[str] = "Could not allocate an order number, please retry"

    # Item transitions
    ITEMS_NOT_FOUND: Final[str] = "Some order items were not found"
    CONCURRENT_UPDATE: Final[str] = "The {entity} was modified concurrently, please retry"

    # Table closure
    TABLE_NOT_OCCUPIED: Final[str] = "Table is not occupied"
    NO_OPEN_ORDERS: Final[str] = "No open orders found for this table"
