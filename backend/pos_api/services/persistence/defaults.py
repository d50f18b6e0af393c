"""
Built-in defaults.

Used to seed the local store on first offline use and to seed empty remote
tables at startup. Every accessor returns fresh copies.
"""

from __future__ import annotations

import copy
from functools import lru_cache
from typing import Any

from shared.config.constants import Capability, EntityTable, SettingKey, UNIT_PIECE
from shared.config.settings import settings
from shared.security.password import hash_password

# bcrypt cost for built-in accounts; they are meant to be replaced on first use
SEED_HASH_ROUNDS = 10

ADMIN_ROLE_ID = "role-admin"
CASHIER_ROLE_ID = "role-cashier"
WAITER_ROLE_ID = "role-waiter"
KITCHEN_ROLE_ID = "role-kitchen"


# =============================================================================
# Option catalogs
# =============================================================================

WING_SAUCES: list[dict[str, str]] = [
    {"key": "bbq", "name": "BBQ"},
    {"key": "bufalo", "name": "Búfalo"},
    {"key": "miel-mostaza", "name": "Miel Mostaza"},
    {"key": "teriyaki", "name": "Teriyaki"},
    {"key": "picante", "name": "Picante Loco"},
    {"key": "limon-pimienta", "name": "Limón Pimienta"},
]

FRY_SAUCES: list[dict[str, str]] = [
    {"key": "tartara", "name": "Tártara"},
    {"key": "rosada", "name": "Rosada"},
    {"key": "ajo", "name": "Ajo"},
    {"key": "queso", "name": "Queso Cheddar"},
]

SUBMENU_CHOICES: dict[str, list[str]] = {
    "bebidas": ["Coca-Cola", "Sprite", "Limonada Natural", "Agua"],
    "acompanantes": ["Papas a la Francesa", "Aros de Cebolla", "Ensalada"],
}

GELATO_FLAVORS: list[str] = [
    "Vainilla",
    "Chocolate",
    "Fresa",
    "Arequipe",
    "Maracuyá",
    "Café",
]


# =============================================================================
# Entity defaults
# =============================================================================

_ROLES: list[dict[str, Any]] = [
    {
        "id": ADMIN_ROLE_ID,
        "name": "Administrador",
        "permissions": [c.value for c in Capability],
    },
    {
        "id": CASHIER_ROLE_ID,
        "name": "Cajero",
        "permissions": [
            Capability.DASHBOARD.value,
            Capability.POS.value,
            Capability.TABLES.value,
            Capability.DELIVERIES.value,
            Capability.CUSTOMERS.value,
            Capability.EXPENSES.value,
        ],
    },
    {
        "id": WAITER_ROLE_ID,
        "name": "Mesero",
        "permissions": [Capability.POS.value, Capability.TABLES.value],
    },
    {
        "id": KITCHEN_ROLE_ID,
        "name": "Cocina",
        "permissions": [Capability.KITCHEN.value],
    },
]

_SITE_NAME = "Sede Principal"


def _sites() -> list[dict[str, Any]]:
    return [{"id": settings.default_site_id, "name": _SITE_NAME, "address": ""}]


@lru_cache(maxsize=None)
def _seed_hash(password: str) -> str:
    return hash_password(password, rounds=SEED_HASH_ROUNDS)


def _users() -> list[dict[str, Any]]:
    site_id = settings.default_site_id
    return [
        {
            "id": "user-admin",
            "username": "admin",
            "name": "Administrador",
            "passwordHash": _seed_hash("admin"),
            "roleId": ADMIN_ROLE_ID,
            "siteId": site_id,
        },
        {
            "id": "user-cajero",
            "username": "cajero",
            "name": "Cajero",
            "passwordHash": _seed_hash("cajero"),
            "roleId": CASHIER_ROLE_ID,
            "siteId": site_id,
        },
    ]


_MENU_ITEMS: list[dict[str, Any]] = [
    {
        "id": "menu-alitas-6",
        "name": "Alitas x6",
        "category": "Alitas",
        "price": 22000,
        "hasWings": True,
        "recipe": [{"inventoryItemId": "inv-alitas", "quantity": 6}],
    },
    {
        "id": "menu-alitas-12",
        "name": "Alitas x12 con Papas",
        "category": "Alitas",
        "price": 39000,
        "hasWings": True,
        "hasFries": True,
        "recipe": [
            {"inventoryItemId": "inv-alitas", "quantity": 12},
            {"inventoryItemId": "inv-papas", "quantity": 0.3},
        ],
    },
    {
        "id": "menu-papas",
        "name": "Papas a la Francesa",
        "category": "Acompañantes",
        "price": 9000,
        "hasFries": True,
        "recipe": [{"inventoryItemId": "inv-papas", "quantity": 0.25}],
    },
    {
        "id": "menu-combo",
        "name": "Combo Loco",
        "category": "Combos",
        "price": 32000,
        "hasWings": True,
        "submenuKey": "bebidas",
    },
    {
        "id": "menu-gelato",
        "name": "Copa Gelato",
        "category": "Postres",
        "price": 12000,
        "maxChoices": 2,
    },
    {
        "id": "menu-gaseosa",
        "name": "Gaseosa",
        "category": "Bebidas",
        "price": 5000,
    },
]

_PRINTER_SETTINGS: dict[str, Any] = {
    "shopName": "Loco Alitas",
    "shopAddress": "",
    "shopNit": "",
    "shopPhone": "",
    "footer": "¡Gracias por tu compra!",
}

_CATEGORY_CONFIGS: list[dict[str, Any]] = [
    {"name": "Alitas", "color": "#F97316", "icon": "drumstick"},
    {"name": "Acompañantes", "color": "#EAB308", "icon": "fries"},
    {"name": "Combos", "color": "#EF4444", "icon": "box"},
    {"name": "Bebidas", "color": "#3B82F6", "icon": "cup"},
    {"name": "Postres", "color": "#EC4899", "icon": "ice-cream"},
]

_LOYALTY_SETTINGS: dict[str, Any] = {
    "enabled": True,
    "pointsPerPeso": 0.01,
    "tiers": [
        {"id": "tier-bronce", "name": "Bronce", "minPoints": 0},
        {"id": "tier-plata", "name": "Plata", "minPoints": 500},
        {"id": "tier-oro", "name": "Oro", "minPoints": 1500},
    ],
}

_EXPENSE_CATEGORIES: list[str] = ["Insumos", "Servicios", "Nómina", "Arriendo", "Otros"]


def _inventory() -> list[dict[str, Any]]:
    site_id = settings.default_site_id
    return [
        {"id": "inv-alitas", "name": "Alitas", "stock": 240, "unit": "pieza",
         "cost": 900, "alertThreshold": 48, "siteId": site_id},
        {"id": "inv-papas", "name": "Papas", "stock": 20, "unit": "kg",
         "cost": 4500, "alertThreshold": 5, "siteId": site_id},
        {"id": "inv-gaseosa", "name": "Gaseosa", "stock": 48, "unit": UNIT_PIECE,
         "cost": 2200, "alertThreshold": 12, "siteId": site_id},
    ]


def default_table(table: str) -> list[dict[str, Any]]:
    """
    Built-in rows for an entity table.

    Only the tables needed to log in and sell have defaults; the others
    start empty.
    """
    if table == EntityTable.USERS:
        return _users()
    if table == EntityTable.ROLES:
        return copy.deepcopy(_ROLES)
    if table == EntityTable.SITES:
        return _sites()
    if table == EntityTable.MENU_ITEMS:
        return copy.deepcopy(_MENU_ITEMS)
    if table == EntityTable.INVENTORY:
        return _inventory()
    return []


def default_setting(key: str) -> Any:
    defaults = {
        SettingKey.PRINTER: _PRINTER_SETTINGS,
        SettingKey.CATEGORIES: _CATEGORY_CONFIGS,
        SettingKey.LOYALTY: _LOYALTY_SETTINGS,
        SettingKey.EXPENSE_CATEGORIES: _EXPENSE_CATEGORIES,
    }
    return copy.deepcopy(defaults.get(key))


# Tables seeded into an empty remote store at startup
SEEDED_TABLES: tuple[str, ...] = (
    EntityTable.USERS,
    EntityTable.ROLES,
    EntityTable.SITES,
    EntityTable.MENU_ITEMS,
)
