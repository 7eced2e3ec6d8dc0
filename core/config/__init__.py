"""
POS Core Config - Public API
============================
Owner-configurable restaurant settings.
"""

from core.config.rules import (
    DEFAULT_CURRENCY,
    ConfigStore,
    InMemoryConfigStore,
    RestaurantSettings,
)

__all__ = [
    "DEFAULT_CURRENCY",
    "ConfigStore",
    "InMemoryConfigStore",
    "RestaurantSettings",
]
