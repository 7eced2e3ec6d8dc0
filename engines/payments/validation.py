"""
POS Payments Engine - Payment Validation
========================================
Money-exactness rules for completing an order, evaluated in order,
first failure wins:

1. Not all cash and payment_total > order_total + ε → CARD_OVERPAYMENT
2. payment_total < order_total − ε                  → UNDERPAYMENT
3. payment_total > order_total + ε and not all cash → CARD_OVERPAYMENT
4. Accept. change = payment_total − order_total when all cash
   and overpaid, otherwise 0.

Both totals are rounded once before comparison.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from core.commands.rejection import ReasonCode
from core.errors import MoneyMismatch, ValidationError
from core.primitives.money import (
    ZERO,
    exceeds,
    falls_short,
    round_currency,
    sum_amounts,
    to_amount,
)
from engines.payments.methods import PaymentMethod, parse_method


@dataclass(frozen=True)
class PaymentLine:
    method: PaymentMethod
    amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, "method", parse_method(self.method))
        try:
            amount = to_amount(self.amount)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid payment amount: {exc}", code=ReasonCode.INVALID_AMOUNT,
            ) from None
        if amount <= 0:
            raise ValidationError(
                "Each payment amount must be greater than zero.",
                code=ReasonCode.INVALID_AMOUNT,
            )
        object.__setattr__(self, "amount", amount)

    @classmethod
    def parse(cls, value: Any) -> "PaymentLine":
        if isinstance(value, PaymentLine):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError(
                "Each payment must be an object with method and amount.",
                code=ReasonCode.MISSING_FIELDS,
            )
        if value.get("method") is None or value.get("amount") is None:
            raise ValidationError(
                "Each payment needs a method and an amount.",
                code=ReasonCode.MISSING_FIELDS,
            )
        return cls(method=value["method"], amount=value["amount"])

    def to_payload(self) -> dict:
        return {"method": self.method.value, "amount": str(self.amount)}


def parse_payment_lines(values: Any) -> Tuple[PaymentLine, ...]:
    if not values or isinstance(values, (str, bytes, Mapping)):
        raise ValidationError(
            "At least one payment is required.", code=ReasonCode.MISSING_FIELDS,
        )
    return tuple(PaymentLine.parse(v) for v in values)


@dataclass(frozen=True)
class PaymentAssessment:
    order_total: Decimal
    payment_total: Decimal
    all_cash: bool
    change: Decimal


def assess_payment(order_total: Any, payments: Sequence[PaymentLine]) -> PaymentAssessment:
    """Apply the exactness/coverage rules; raise MoneyMismatch on failure."""
    if not payments:
        raise ValidationError(
            "At least one payment is required.", code=ReasonCode.MISSING_FIELDS,
        )
    total = round_currency(order_total)
    paid = sum_amounts(p.amount for p in payments)
    all_cash = all(p.method == PaymentMethod.CASH for p in payments)

    if not all_cash and exceeds(paid, total):
        raise MoneyMismatch(
            "Card and wallet payments must be exact; overpayment is only "
            "allowed when paying fully in cash.",
            order_total=total,
            payment_total=paid,
            code=ReasonCode.CARD_OVERPAYMENT,
        )

    if falls_short(paid, total):
        raise MoneyMismatch(
            f"Payment total {paid} does not cover the order total {total}.",
            order_total=total,
            payment_total=paid,
            code=ReasonCode.UNDERPAYMENT,
        )

    if exceeds(paid, total) and not all_cash:
        raise MoneyMismatch(
            "Non-cash overpayment is not allowed.",
            order_total=total,
            payment_total=paid,
            code=ReasonCode.CARD_OVERPAYMENT,
        )

    change = round_currency(paid - total) if all_cash and paid > total else ZERO
    return PaymentAssessment(
        order_total=total,
        payment_total=paid,
        all_cash=all_cash,
        change=change,
    )


def allocate_payments(
    order_totals: Sequence[Decimal],
    payments: Iterable[PaymentLine],
) -> List[List[PaymentLine]]:
    """
    Cover each order with exactly its total, taking the payments in
    the order they were tendered. Whatever is left after the earlier
    orders, the cash surplus included, lands on the last order, which
    is the one that carries the change.
    """
    queue = [[payment.method, payment.amount] for payment in payments]
    allocation: List[List[PaymentLine]] = [[] for _ in order_totals]
    last = len(order_totals) - 1

    for index, order_total in enumerate(order_totals):
        due = None if index == last else order_total
        for entry in queue:
            if due is not None and due <= 0:
                break
            share = entry[1] if due is None else min(entry[1], due)
            if share <= 0:
                continue
            entry[1] -= share
            if due is not None:
                due -= share
            allocation[index].append(PaymentLine(entry[0], share))
    return allocation
