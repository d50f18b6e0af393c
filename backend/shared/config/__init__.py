"""
Configuration module: Settings, logging, constants.
"""

from shared.config.settings import settings, get_settings
from shared.config.logging import get_logger, setup_logging
from shared.config.constants import (
    OrderStatus,
    OrderType,
    TableStatus,
    EntityTable,
    SettingKey,
    Capability,
    GLOBAL_SITE_ID,
)

__all__ = [
    # settings
    "settings",
    "get_settings",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "OrderStatus",
    "OrderType",
    "TableStatus",
    "EntityTable",
    "SettingKey",
    "Capability",
    "GLOBAL_SITE_ID",
]
