"""
Centralized constants for the POS engine.
Avoid magic strings for statuses, channels and table names.

Usage:
    from shared.config.constants import OrderStatus, ACTIVE_ORDER_STATUSES

    if order.status in ACTIVE_ORDER_STATUSES:
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Sites
# =============================================================================

# Sentinel site id: aggregate across all sites, read-only for operations
GLOBAL_SITE_ID: Final[str] = "global"


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderType(str, Enum):
    DINE_IN = "dine-in"
    DELIVERY = "delivery"
    TO_GO = "to-go"


class OrderStatus(str, Enum):
    """Order lifecycle statuses. COMPLETED and CANCELLED are terminal."""

    PENDING_CONFIRMATION = "pending_confirmation"
    OPEN = "open"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_ORDER_STATUSES: Final[frozenset[OrderStatus]] = frozenset({
    OrderStatus.PENDING_CONFIRMATION,
    OrderStatus.OPEN,
    OrderStatus.READY,
})
TERMINAL_ORDER_STATUSES: Final[frozenset[OrderStatus]] = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
})

# Allowed status transitions. Terminal statuses have no exits.
ORDER_TRANSITIONS: Final[dict[OrderStatus, frozenset[OrderStatus]]] = {
    OrderStatus.PENDING_CONFIRMATION: frozenset({
        OrderStatus.OPEN,
        OrderStatus.READY,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.OPEN: frozenset({
        OrderStatus.READY,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.READY: frozenset({
        OrderStatus.OPEN,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class TableStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    CLEANING = "cleaning"


class DeliveryStatus(str, Enum):
    QUOTING = "quoting"
    CONFIRMED = "confirmed"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"


class PaymentMethod(str, Enum):
    CASH = "Efectivo"
    CARD = "Tarjeta"
    TRANSFER = "Transferencia"


# Inventory unit that allows deducting by menu item name when there is no recipe
UNIT_PIECE: Final[str] = "unidad"

QUICK_SALE_NAME: Final[str] = "Venta Rápida"


# =============================================================================
# Persistence
# =============================================================================


class EntityTable:
    """Remote table names. Each row is {id, data}."""

    USERS: Final[str] = "users"
    ROLES: Final[str] = "roles"
    MENU_ITEMS: Final[str] = "menu_items"
    TABLES: Final[str] = "tables"
    ZONES: Final[str] = "zones"
    INVENTORY: Final[str] = "inventory"
    ORDERS: Final[str] = "orders"
    SALES: Final[str] = "sales"
    CUSTOMERS: Final[str] = "customers"
    EXPENSES: Final[str] = "expenses"
    DELIVERY_RATES: Final[str] = "delivery_rates"
    SITES: Final[str] = "sedes"

    ALL: Final[tuple[str, ...]] = (
        USERS,
        ROLES,
        MENU_ITEMS,
        TABLES,
        ZONES,
        INVENTORY,
        ORDERS,
        SALES,
        CUSTOMERS,
        EXPENSES,
        DELIVERY_RATES,
        SITES,
    )

    # A failed fetch of any of these aborts the whole snapshot
    CRITICAL: Final[tuple[str, ...]] = (USERS, ROLES)


class SettingKey:
    """Keys of the settings table ({key, value})."""

    PRINTER: Final[str] = "printer_settings"
    CATEGORIES: Final[str] = "category_configs"
    LOYALTY: Final[str] = "loyalty_settings"
    EXPENSE_CATEGORIES: Final[str] = "expense_categories"

    ALL: Final[tuple[str, ...]] = (PRINTER, CATEGORIES, LOYALTY, EXPENSE_CATEGORIES)


SESSION_KEY: Final[str] = "session"
WILDCARD_TABLE: Final[str] = "*"


class ChangeEvent:
    """Change notification event names."""

    INSERT: Final[str] = "INSERT"
    UPDATE: Final[str] = "UPDATE"
    DELETE: Final[str] = "DELETE"


# =============================================================================
# Capabilities
# =============================================================================


class Capability(str, Enum):
    """
    Capabilities a role can grant. Role records persist the string values;
    unknown strings are dropped when a role is loaded.
    """

    DASHBOARD = "DASHBOARD"
    POS = "POS"
    TABLES = "TABLES"
    MENU = "MENU"
    INVENTORY = "INVENTORY"
    DELIVERIES = "DELIVERIES"
    CUSTOMERS = "CUSTOMERS"
    LOYALTY = "LOYALTY"
    EXPENSES = "EXPENSES"
    REPORTS = "REPORTS"
    KITCHEN = "KITCHEN"
    SETTINGS = "SETTINGS"
    USERS = "USERS"
    SITES = "SITES"
