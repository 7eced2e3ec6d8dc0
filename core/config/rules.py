"""
POS Core Config - Restaurant Settings
=====================================
Tax and service-charge rates and kitchen dispatch behaviour are
owner-configured per restaurant, never hardcoded in engine logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Protocol

from core.primitives.money import to_amount


DEFAULT_CURRENCY = "JOD"


# ══════════════════════════════════════════════════════════════
# RESTAURANT SETTINGS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RestaurantSettings:
    """
    Per-restaurant pricing settings.

    Rates are fractions: Decimal("0.16") means 16%.
    """

    restaurant_id: str
    tax_rate: Decimal = Decimal("0")
    service_charge_rate: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    qr_auto_dispatch: bool = True

    def __post_init__(self) -> None:
        if not self.restaurant_id:
            raise ValueError("restaurant_id must be non-empty.")
        tax = to_amount(self.tax_rate)
        service = to_amount(self.service_charge_rate)
        if not 0 <= tax <= 1:
            raise ValueError(f"Tax rate must be between 0 and 1, got {tax}.")
        if not 0 <= service <= 1:
            raise ValueError(
                f"Service charge rate must be between 0 and 1, got {service}."
            )
        object.__setattr__(self, "tax_rate", tax)
        object.__setattr__(self, "service_charge_rate", service)
        if len(self.currency or "") != 3:
            raise ValueError(f"currency must be an ISO 4217 code, got {self.currency!r}.")


# ══════════════════════════════════════════════════════════════
# SETTINGS SOURCE
# ══════════════════════════════════════════════════════════════

class ConfigStore(Protocol):
    """Where services read owner settings from; unknown restaurants get defaults."""

    def get_settings(self, restaurant_id: str) -> RestaurantSettings:
        """Settings for a restaurant; defaults when none were saved."""
        ...  # pragma: no cover


# ══════════════════════════════════════════════════════════════
# IN-MEMORY SETTINGS
# ══════════════════════════════════════════════════════════════

class InMemoryConfigStore:
    def __init__(self) -> None:
        self._settings: Dict[str, RestaurantSettings] = {}

    def save(self, settings: RestaurantSettings) -> None:
        self._settings[settings.restaurant_id] = settings

    def get_settings(self, restaurant_id: str) -> RestaurantSettings:
        found: Optional[RestaurantSettings] = self._settings.get(restaurant_id)
        if found is not None:
            return found
        return RestaurantSettings(restaurant_id=restaurant_id)
