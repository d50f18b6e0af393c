"""
Entity tables of the remote store.

Every entity table has the same `{id, data}` shape; only the table name
differs. Settings blobs live in their own `{key, value}` table.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import EntityTable

from .base import Base, EntityRowMixin


class UserRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.USERS


class RoleRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.ROLES


class MenuItemRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.MENU_ITEMS


class TableRow(EntityRowMixin, Base):
    # "tables" is not reserved in PostgreSQL or SQLite
    __tablename__ = EntityTable.TABLES


class ZoneRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.ZONES


class InventoryRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.INVENTORY


class OrderRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.ORDERS


class SaleRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.SALES


class CustomerRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.CUSTOMERS


class ExpenseRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.EXPENSES


class DeliveryRateRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.DELIVERY_RATES


class SiteRow(EntityRowMixin, Base):
    __tablename__ = EntityTable.SITES


class SettingRow(Base):
    """Configuration blob keyed by setting name."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)


ROW_MODELS: dict[str, type[EntityRowMixin]] = {
    EntityTable.USERS: UserRow,
    EntityTable.ROLES: RoleRow,
    EntityTable.MENU_ITEMS: MenuItemRow,
    EntityTable.TABLES: TableRow,
    EntityTable.ZONES: ZoneRow,
    EntityTable.INVENTORY: InventoryRow,
    EntityTable.ORDERS: OrderRow,
    EntityTable.SALES: SaleRow,
    EntityTable.CUSTOMERS: CustomerRow,
    EntityTable.EXPENSES: ExpenseRow,
    EntityTable.DELIVERY_RATES: DeliveryRateRow,
    EntityTable.SITES: SiteRow,
}


def row_model_for(table: str) -> type[EntityRowMixin]:
    """Resolve the ORM class for an entity table name."""
    try:
        return ROW_MODELS[table]
    except KeyError:
        raise ValueError(f"Unknown entity table: {table}") from None
