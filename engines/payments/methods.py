"""
POS Payments Engine - Payment Methods
=====================================
The identifier set is fixed. Which methods a branch accepts is
configured through feature flags (payments.method.<id>).
"""

from __future__ import annotations

from enum import Enum

from core.commands.rejection import ReasonCode
from core.errors import ValidationError


class PaymentMethod(str, Enum):
    CASH = "cash"
    VISA = "visa"
    CLIQ = "cliq"
    ZAIN_CASH = "zain_cash"
    ORANGE_MONEY = "orange_money"
    UMNIAH_WALLET = "umniah_wallet"


ALLOWED_PAYMENT_METHODS = tuple(m.value for m in PaymentMethod)


def parse_method(value) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(
            f"Invalid payment method '{value}'. "
            f"Allowed: {', '.join(ALLOWED_PAYMENT_METHODS)}.",
            code=ReasonCode.INVALID_PAYMENT_METHOD,
        ) from None
