"""
POS Orders Engine - Request Commands
====================================
Frozen request objects. Malformed input is rejected in
__post_init__ with ValidationError before any store access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple

from core.commands.rejection import ReasonCode
from core.errors import ValidationError
from core.primitives.money import round_currency, to_amount
from engines.orders.aggregate import DiscountType
from engines.orders.state_machine import OrderType


def _non_empty(value, name: str) -> None:
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{name} must be non-empty.", code=ReasonCode.MISSING_FIELDS,
        )


def _amount(value, name: str) -> Decimal:
    try:
        return to_amount(value)
    except ValueError as exc:
        raise ValidationError(
            f"{name}: {exc}", code=ReasonCode.INVALID_AMOUNT,
        ) from None


@dataclass(frozen=True)
class ModifierSelection:
    modifier_name: str
    option_name: str
    price_adjustment: Decimal = Decimal("0")
    modifier_option_id: Optional[str] = None

    def __post_init__(self):
        _non_empty(self.modifier_name, "modifier_name")
        _non_empty(self.option_name, "option_name")
        object.__setattr__(
            self, "price_adjustment",
            round_currency(_amount(self.price_adjustment, "price_adjustment")),
        )

    def to_row(self) -> dict:
        return {
            "modifier_option_id": self.modifier_option_id,
            "modifier_name": self.modifier_name,
            "option_name": self.option_name,
            "price_adjustment": self.price_adjustment,
        }


@dataclass(frozen=True)
class CreateOrderRequest:
    table_id: Optional[str] = None
    order_type: str = OrderType.DINE_IN.value
    customer_name: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        valid = {t.value for t in OrderType}
        if self.order_type not in valid:
            raise ValidationError(
                f"order_type must be one of {sorted(valid)}.",
                code=ReasonCode.MISSING_FIELDS,
            )


@dataclass(frozen=True)
class AddItemRequest:
    order_id: str
    name: str
    price: Decimal
    quantity: int = 1
    menu_item_id: Optional[str] = None
    notes: Optional[str] = None
    modifiers: Tuple[ModifierSelection, ...] = field(default_factory=tuple)

    def __post_init__(self):
        _non_empty(self.order_id, "order_id")
        _non_empty(self.name, "name")
        price = round_currency(_amount(self.price, "price"))
        if price < 0:
            raise ValidationError(
                "price must be zero or positive.", code=ReasonCode.INVALID_AMOUNT,
            )
        object.__setattr__(self, "price", price)
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValidationError(
                "quantity must be a positive integer.",
                code=ReasonCode.INVALID_AMOUNT,
            )
        if not isinstance(self.modifiers, tuple):
            raise ValidationError(
                "modifiers must be a tuple.", code=ReasonCode.MISSING_FIELDS,
            )


@dataclass(frozen=True)
class ApplyDiscountRequest:
    order_id: str
    discount_type: Optional[str]
    discount_value: Optional[Decimal] = None

    def __post_init__(self):
        _non_empty(self.order_id, "order_id")
        if self.discount_type is None:
            object.__setattr__(self, "discount_value", None)
            return
        valid = {d.value for d in DiscountType}
        if self.discount_type not in valid:
            raise ValidationError(
                f"discount_type must be one of {sorted(valid)}.",
                code=ReasonCode.INVALID_DISCOUNT,
            )
        value = _amount(
            self.discount_value if self.discount_value is not None else 0,
            "discount_value",
        )
        if value < 0:
            raise ValidationError(
                "discount_value must be zero or positive.",
                code=ReasonCode.INVALID_DISCOUNT,
            )
        if self.discount_type == DiscountType.PERCENT.value and value > 100:
            raise ValidationError(
                "A percent discount cannot exceed 100.",
                code=ReasonCode.INVALID_DISCOUNT,
            )
        object.__setattr__(self, "discount_value", value)


__all__ = [
    "AddItemRequest",
    "ApplyDiscountRequest",
    "CreateOrderRequest",
    "ModifierSelection",
]
