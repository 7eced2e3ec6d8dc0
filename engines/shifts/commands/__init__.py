"""
POS Shifts Engine - Request Commands
====================================
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from core.commands.rejection import ReasonCode
from core.errors import ValidationError
from core.primitives.money import round_currency


class CashMovementType(str, Enum):
    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"


def _cash(value, name: str, allow_zero: bool) -> Decimal:
    try:
        amount = round_currency(value)
    except ValueError as exc:
        raise ValidationError(f"{name}: {exc}", code=ReasonCode.INVALID_AMOUNT) from None
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(
            f"{name} must be {'zero or ' if allow_zero else ''}positive.",
            code=ReasonCode.INVALID_AMOUNT,
        )
    return amount


@dataclass(frozen=True)
class OpenShiftRequest:
    opening_cash: Decimal

    def __post_init__(self):
        object.__setattr__(
            self, "opening_cash", _cash(self.opening_cash, "opening_cash", True),
        )


@dataclass(frozen=True)
class CloseShiftRequest:
    shift_id: str
    closing_cash: Decimal
    notes: Optional[str] = None

    def __post_init__(self):
        if not self.shift_id:
            raise ValidationError(
                "shift_id must be non-empty.", code=ReasonCode.MISSING_FIELDS,
            )
        object.__setattr__(
            self, "closing_cash", _cash(self.closing_cash, "closing_cash", True),
        )


@dataclass(frozen=True)
class CashMovementRequest:
    shift_id: str
    movement_type: str
    amount: Decimal
    reason: Optional[str] = None

    def __post_init__(self):
        if not self.shift_id:
            raise ValidationError(
                "shift_id must be non-empty.", code=ReasonCode.MISSING_FIELDS,
            )
        valid = {t.value for t in CashMovementType}
        if self.movement_type not in valid:
            raise ValidationError(
                f"movement_type must be one of {sorted(valid)}.",
                code=ReasonCode.MISSING_FIELDS,
            )
        object.__setattr__(self, "amount", _cash(self.amount, "amount", False))
        object.__setattr__(self, "reason", (self.reason or "").strip() or None)


__all__ = [
    "CashMovementRequest",
    "CashMovementType",
    "CloseShiftRequest",
    "OpenShiftRequest",
]
