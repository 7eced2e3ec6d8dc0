"""
POS Shifts Engine - Cash Reconciliation
=======================================
expected_cash = opening_cash + net cash sales + cash_in − cash_out

net cash sales = cash tendered − change given − cash share of refunds

Only payments of the order's current payment round count; rows
superseded by a reopen stay in the store for audit but are not
cash in the drawer twice.

A refund is attributed to cash in proportion to the cash share of
what the order was paid with. Orders without payment rows are
treated as cash.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from core.primitives.money import ZERO, round_currency, to_amount


@dataclass(frozen=True)
class ShiftReconciliation:
    opening_cash: Decimal
    cash_tendered: Decimal
    change_given: Decimal
    cash_refunds: Decimal
    cash_in: Decimal
    cash_out: Decimal
    expected_cash: Decimal
    closing_cash: Optional[Decimal] = None

    @property
    def net_cash_sales(self) -> Decimal:
        return self.cash_tendered - self.change_given - self.cash_refunds

    @property
    def difference(self) -> Optional[Decimal]:
        if self.closing_cash is None:
            return None
        return round_currency(self.closing_cash - self.expected_cash)

    def to_dict(self) -> dict:
        return {
            "opening_cash": self.opening_cash,
            "cash_tendered": self.cash_tendered,
            "change_given": self.change_given,
            "cash_refunds": self.cash_refunds,
            "net_cash_sales": self.net_cash_sales,
            "cash_in": self.cash_in,
            "cash_out": self.cash_out,
            "expected_cash": self.expected_cash,
            "closing_cash": self.closing_cash,
            "difference": self.difference,
        }


def reconcile_cash(
    opening_cash: Any,
    orders: Iterable[Mapping[str, Any]],
    payments: Iterable[Mapping[str, Any]],
    refunds: Iterable[Mapping[str, Any]],
    movements: Iterable[Mapping[str, Any]],
    closing_cash: Any = None,
) -> ShiftReconciliation:
    orders_by_id = {o["id"]: o for o in orders}

    cash_by_order: dict = {}
    paid_by_order: dict = {}
    for payment in payments:
        order = orders_by_id.get(payment["order_id"])
        if order is None:
            continue
        if int(payment.get("payment_round") or 1) != int(order.get("payment_round") or 1):
            continue
        amount = to_amount(payment["amount"])
        paid_by_order[order["id"]] = paid_by_order.get(order["id"], ZERO) + amount
        if payment["method"] == "cash":
            cash_by_order[order["id"]] = cash_by_order.get(order["id"], ZERO) + amount

    cash_tendered = sum(cash_by_order.values(), ZERO)
    change_given = sum(
        (to_amount(o.get("change_amount") or 0) for o in orders_by_id.values()),
        ZERO,
    )

    cash_refunds = ZERO
    for refund in refunds:
        order_id = refund["order_id"]
        if order_id not in orders_by_id:
            continue
        amount = to_amount(refund["amount"])
        change = to_amount(orders_by_id[order_id].get("change_amount") or 0)
        kept = paid_by_order.get(order_id, ZERO) - change
        if kept <= 0:
            cash_refunds += amount
            continue
        cash_kept = cash_by_order.get(order_id, ZERO) - change
        cash_refunds += amount * cash_kept / kept
    cash_refunds = round_currency(cash_refunds)

    cash_in = ZERO
    cash_out = ZERO
    for movement in movements:
        if movement["type"] == "cash_in":
            cash_in += to_amount(movement["amount"])
        elif movement["type"] == "cash_out":
            cash_out += to_amount(movement["amount"])

    opening = round_currency(opening_cash or 0)
    expected = round_currency(
        opening + cash_tendered - change_given - cash_refunds + cash_in - cash_out
    )
    return ShiftReconciliation(
        opening_cash=opening,
        cash_tendered=round_currency(cash_tendered),
        change_given=round_currency(change_given),
        cash_refunds=cash_refunds,
        cash_in=round_currency(cash_in),
        cash_out=round_currency(cash_out),
        expected_cash=expected,
        closing_cash=None if closing_cash is None else round_currency(closing_cash),
    )
