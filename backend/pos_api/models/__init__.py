"""
SQLAlchemy ORM Models Package.

- base: Base class and EntityRowMixin ({id, data} rows)
- records: One row class per entity table, SettingRow, ROW_MODELS registry
"""

from .base import Base, EntityRowMixin
from .records import (
    UserRow,
    RoleRow,
    MenuItemRow,
    TableRow,
    ZoneRow,
    InventoryRow,
    OrderRow,
    SaleRow,
    CustomerRow,
    ExpenseRow,
    DeliveryRateRow,
    SiteRow,
    SettingRow,
    ROW_MODELS,
    row_model_for,
)

__all__ = [
    "Base",
    "EntityRowMixin",
    "UserRow",
    "RoleRow",
    "MenuItemRow",
    "TableRow",
    "ZoneRow",
    "InventoryRow",
    "OrderRow",
    "SaleRow",
    "CustomerRow",
    "ExpenseRow",
    "DeliveryRateRow",
    "SiteRow",
    "SettingRow",
    "ROW_MODELS",
    "row_model_for",
]
