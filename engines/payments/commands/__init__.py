"""
POS Payments Engine - Request Commands
======================================
Requests travel to the remote procedures as JSON payloads
(to_payload) and are rebuilt and re-validated on arrival
(from_payload).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from core.commands.rejection import ReasonCode
from core.errors import ValidationError
from core.primitives.money import to_amount
from engines.payments.validation import PaymentLine, parse_payment_lines


class RefundType(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


def _required_id(value: Any, name: str) -> str:
    if not value or not isinstance(value, str):
        raise ValidationError(f"{name} is required.", code=ReasonCode.MISSING_FIELDS)
    return value


@dataclass(frozen=True)
class CompletePaymentRequest:
    order_id: str
    payments: Tuple[PaymentLine, ...]

    def __post_init__(self):
        _required_id(self.order_id, "order_id")
        object.__setattr__(self, "payments", parse_payment_lines(self.payments))

    def to_payload(self) -> dict:
        return {
            "order_id": self.order_id,
            "payments": [p.to_payload() for p in self.payments],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CompletePaymentRequest":
        return cls(
            order_id=payload.get("order_id"),
            payments=payload.get("payments") or (),
        )


@dataclass(frozen=True)
class CompleteTablePaymentRequest:
    order_ids: Tuple[str, ...]
    payments: Tuple[PaymentLine, ...]

    def __post_init__(self):
        if not self.order_ids or isinstance(self.order_ids, str):
            raise ValidationError(
                "order_ids must list at least one order.",
                code=ReasonCode.MISSING_FIELDS,
            )
        ids = tuple(_required_id(i, "order_id") for i in self.order_ids)
        if len(set(ids)) != len(ids):
            raise ValidationError(
                "order_ids must not repeat an order.", code=ReasonCode.MISSING_FIELDS,
            )
        object.__setattr__(self, "order_ids", ids)
        object.__setattr__(self, "payments", parse_payment_lines(self.payments))

    def to_payload(self) -> dict:
        return {
            "order_ids": list(self.order_ids),
            "payments": [p.to_payload() for p in self.payments],
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CompleteTablePaymentRequest":
        return cls(
            order_ids=tuple(payload.get("order_ids") or ()),
            payments=payload.get("payments") or (),
        )


@dataclass(frozen=True)
class CreateRefundRequest:
    """
    amount may be omitted for a full refund; the procedure then
    refunds whatever is still refundable.
    """

    order_id: str
    reason: str
    refund_type: str = RefundType.PARTIAL.value
    amount: Optional[Decimal] = None

    def __post_init__(self):
        _required_id(self.order_id, "order_id")
        valid = {t.value for t in RefundType}
        if self.refund_type not in valid:
            raise ValidationError(
                f"refund_type must be one of {sorted(valid)}.",
                code=ReasonCode.MISSING_FIELDS,
            )
        reason = (self.reason or "").strip()
        if not reason:
            raise ValidationError(
                "A reason is required for refunds.", code=ReasonCode.REASON_REQUIRED,
            )
        object.__setattr__(self, "reason", reason[:500])

        if self.amount is None:
            if self.refund_type == RefundType.PARTIAL.value:
                raise ValidationError(
                    "Partial refunds need an amount.", code=ReasonCode.INVALID_AMOUNT,
                )
            return
        try:
            amount = to_amount(self.amount)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid refund amount: {exc}", code=ReasonCode.INVALID_AMOUNT,
            ) from None
        if amount <= 0:
            raise ValidationError(
                "Refund amount must be greater than zero.",
                code=ReasonCode.INVALID_AMOUNT,
            )
        object.__setattr__(self, "amount", amount)

    def to_payload(self) -> dict:
        return {
            "order_id": self.order_id,
            "reason": self.reason,
            "refund_type": self.refund_type,
            "amount": None if self.amount is None else str(self.amount),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CreateRefundRequest":
        return cls(
            order_id=payload.get("order_id"),
            reason=payload.get("reason") or "",
            refund_type=payload.get("refund_type") or RefundType.PARTIAL.value,
            amount=payload.get("amount"),
        )


__all__ = [
    "CompletePaymentRequest",
    "CompleteTablePaymentRequest",
    "CreateRefundRequest",
    "RefundType",
]
