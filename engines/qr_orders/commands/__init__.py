"""
POS QR Orders Engine - Request Commands
=======================================
Customer-side order intake from a table's QR code.
Prices are never taken from the request: they are read from the
menu when the order is stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from core.commands.rejection import ReasonCode
from core.errors import ValidationError
from engines.orders.commands import ModifierSelection


def _required(value, name: str) -> None:
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required.", code=ReasonCode.MISSING_FIELDS)


@dataclass(frozen=True)
class QrOrderLine:
    menu_item_id: str
    quantity: int = 1
    notes: Optional[str] = None
    modifiers: Tuple[ModifierSelection, ...] = field(default_factory=tuple)

    def __post_init__(self):
        _required(self.menu_item_id, "menu_item_id")
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValidationError(
                "quantity must be a positive integer.",
                code=ReasonCode.INVALID_AMOUNT,
            )
        object.__setattr__(self, "modifiers", tuple(self.modifiers))


@dataclass(frozen=True)
class SubmitQrOrderRequest:
    restaurant_id: str
    table_id: str
    lines: Tuple[QrOrderLine, ...]
    branch_id: Optional[str] = None
    customer_name: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        _required(self.restaurant_id, "restaurant_id")
        if not self.table_id:
            raise ValidationError(
                "QR orders must be linked to a table.",
                code=ReasonCode.NO_TABLE_ASSIGNED,
            )
        lines = tuple(self.lines or ())
        if not lines:
            raise ValidationError(
                "A QR order needs at least one item.",
                code=ReasonCode.MISSING_FIELDS,
            )
        object.__setattr__(self, "lines", lines)


__all__ = ["QrOrderLine", "SubmitQrOrderRequest"]
