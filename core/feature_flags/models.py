"""
POS Feature Flags - Immutable Models
====================================
A flag switches one capability (KDS, inventory deduction, a payment
method) on or off for a restaurant, or for a single branch of it.
A branch-scoped flag carries branch_id; a restaurant-wide flag
leaves it None.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


FEATURE_ENABLED = "ENABLED"
FEATURE_DISABLED = "DISABLED"

FLAG_STATUSES = (FEATURE_ENABLED, FEATURE_DISABLED)

# (flag_key, restaurant_id, branch_id or None)
FlagScope = tuple[str, str, Optional[str]]


def _require_text(field_name: str, value, optional: bool = False) -> None:
    if optional and value is None:
        return
    if isinstance(value, str) and value:
        return
    suffix = " or None" if optional else ""
    raise ValueError(f"{field_name} must be a non-empty string{suffix}.")


@dataclass(frozen=True)
class FeatureFlag:
    flag_key: str
    restaurant_id: str
    branch_id: Optional[str] = None
    status: str = FEATURE_DISABLED
    created_at: Optional[datetime] = None

    def __post_init__(self):
        _require_text("flag_key", self.flag_key)
        _require_text("restaurant_id", self.restaurant_id)
        _require_text("branch_id", self.branch_id, optional=True)
        if self.status not in FLAG_STATUSES:
            raise ValueError(
                f"Flag status {self.status!r} is not valid; "
                f"use {FEATURE_ENABLED} or {FEATURE_DISABLED}."
            )

    @property
    def enabled(self) -> bool:
        return self.status == FEATURE_ENABLED

    @property
    def scope(self) -> FlagScope:
        return (self.flag_key, self.restaurant_id, self.branch_id)
