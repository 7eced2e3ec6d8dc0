"""
POS Payments Engine - Atomic Procedures
=======================================
Server-side handlers for complete-payment, complete-table-payment
and create-refund. The procedure host runs each one inside a single
store transaction: every write below commits together or not at all.

No other code path sets an order to paid.

complete-payment:
1. Validate the payload (orderId, non-empty payments, allowed
   methods, amounts > 0)
2. Lock the order row; re-check tenancy and payable status
   (a settled order fails with AlreadyPaid)
3. Reject methods the branch has not enabled
4. Recompute the total from stored items
5. Apply the exactness rules
6. Conditional update to paid, then insert the payment rows
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from core.commands.rejection import ReasonCode
from core.errors import (
    AccessDenied,
    MoneyMismatch,
    PreconditionFailed,
    ValidationError,
)
from core.feature_flags.evaluator import FeatureFlagEvaluator
from core.primitives.money import (
    ZERO,
    amounts_equal,
    exceeds,
    falls_short,
    round_currency,
    sum_amounts,
)
from core.rpc.contracts import COMPLETE_PAYMENT, COMPLETE_TABLE_PAYMENT, CREATE_REFUND
from core.rpc.host import ProcedureContext
from core.store.protocol import Row
from core.store.tables import PAYMENTS, REFUNDS
from engines.orders.repository import OrderRepository
from engines.orders.state_machine import (
    PAY,
    PAYABLE_STATUSES,
    REFUND,
    OrderStatus,
    assert_order_transition,
)
from engines.payments.commands import (
    CompletePaymentRequest,
    CompleteTablePaymentRequest,
    CreateRefundRequest,
    RefundType,
)
from engines.payments.methods import ALLOWED_PAYMENT_METHODS
from engines.payments.validation import (
    PaymentLine,
    allocate_payments,
    assess_payment,
)

logger = logging.getLogger("pos.payments")


def ensure_methods_enabled(
    ctx: ProcedureContext,
    order: Mapping[str, Any],
    payments: Sequence[PaymentLine],
) -> None:
    enabled = FeatureFlagEvaluator.enabled_payment_methods(
        ALLOWED_PAYMENT_METHODS,
        order["restaurant_id"],
        order.get("branch_id"),
        ctx.flags,
    )
    disabled = sorted({p.method.value for p in payments} - enabled)
    if disabled:
        raise ValidationError(
            f"Payment method(s) not enabled for this branch: {', '.join(disabled)}.",
            code=ReasonCode.PAYMENT_METHOD_DISABLED,
            details={"disabled_methods": disabled, "enabled_methods": sorted(enabled)},
        )


def _lock_payable(orders: OrderRepository, ctx: ProcedureContext, order_id: str) -> Row:
    row = orders.require_row(order_id, ctx.session, for_update=True)
    if row["status"] not in PAYABLE_STATUSES:
        assert_order_transition(PAY, row["status"])
    return row


def _payment_rows(
    order: Mapping[str, Any],
    lines: Sequence[PaymentLine],
    ctx: ProcedureContext,
) -> List[Dict[str, Any]]:
    now = ctx.clock.now_utc()
    return [
        {
            "order_id": order["id"],
            "restaurant_id": order["restaurant_id"],
            "branch_id": order.get("branch_id"),
            "shift_id": order.get("shift_id"),
            "method": line.method.value,
            "amount": round_currency(line.amount),
            "payment_round": int(order.get("payment_round") or 1),
            "created_by": ctx.session.user_id,
            "created_at": now,
        }
        for line in lines
    ]


# ══════════════════════════════════════════════════════════════
# complete-payment
# ══════════════════════════════════════════════════════════════

def complete_payment(ctx: ProcedureContext, payload: Dict[str, Any]) -> Dict[str, Any]:
    request = CompletePaymentRequest.from_payload(payload)
    orders = OrderRepository(ctx.store, ctx.clock)

    row = _lock_payable(orders, ctx, request.order_id)
    ensure_methods_enabled(ctx, row, request.payments)

    row = orders.recompute_totals(row["id"])
    assessment = assess_payment(row["total"], request.payments)

    now = ctx.clock.now_utc()
    updated = orders.transition(
        row, PAY, patch={"paid_at": now, "change_amount": assessment.change},
    )
    payments = ctx.store.insert(PAYMENTS, _payment_rows(updated, request.payments, ctx))

    logger.info(
        f"Order {updated['id']} paid: total {assessment.order_total}, "
        f"tendered {assessment.payment_total}, change {assessment.change}"
    )
    return {
        "order": updated,
        "payments": payments,
        "order_total": assessment.order_total,
        "payment_total": assessment.payment_total,
        "change": assessment.change,
    }


# ══════════════════════════════════════════════════════════════
# complete-table-payment
# ══════════════════════════════════════════════════════════════

def complete_table_payment(ctx: ProcedureContext, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Settle several orders of one table with one set of payments.
    Cash change is recorded on the last order (highest order number).
    """
    request = CompleteTablePaymentRequest.from_payload(payload)
    orders = OrderRepository(ctx.store, ctx.clock)

    rows = [_lock_payable(orders, ctx, order_id) for order_id in request.order_ids]
    restaurants = {r["restaurant_id"] for r in rows}
    if len(restaurants) != 1:
        raise AccessDenied(
            "All orders must belong to the same restaurant.",
            code=ReasonCode.RESTAURANT_MISMATCH,
        )
    for row in rows:
        ensure_methods_enabled(ctx, row, request.payments)

    rows = sorted(
        (orders.recompute_totals(r["id"]) for r in rows),
        key=lambda r: int(r["order_number"]),
    )
    order_totals = [round_currency(r["total"]) for r in rows]
    assessment = assess_payment(sum_amounts(order_totals), request.payments)
    allocation = allocate_payments(order_totals, request.payments)

    now = ctx.clock.now_utc()
    paid_orders: List[Row] = []
    payments: List[Row] = []
    last = len(rows) - 1
    for index, row in enumerate(rows):
        updated = orders.transition(
            row, PAY,
            patch={
                "paid_at": now,
                "change_amount": assessment.change if index == last else ZERO,
            },
        )
        paid_orders.append(updated)
        if allocation[index]:
            payments.extend(
                ctx.store.insert(PAYMENTS, _payment_rows(updated, allocation[index], ctx))
            )

    logger.info(
        f"Table checkout of {len(rows)} orders: combined {assessment.order_total}, "
        f"tendered {assessment.payment_total}, change {assessment.change}"
    )
    return {
        "orders": paid_orders,
        "payments": payments,
        "combined_total": assessment.order_total,
        "payment_total": assessment.payment_total,
        "change": assessment.change,
    }


# ══════════════════════════════════════════════════════════════
# create-refund
# ══════════════════════════════════════════════════════════════

def create_refund(ctx: ProcedureContext, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Append a refund. The order moves to refunded once refunds reach
    its total; a refunded order accepts no further refunds.
    """
    request = CreateRefundRequest.from_payload(payload)
    orders = OrderRepository(ctx.store, ctx.clock)

    row = orders.require_row(request.order_id, ctx.session, for_update=True)
    if row["status"] == OrderStatus.REFUNDED.value:
        raise PreconditionFailed(
            "Order is already fully refunded.",
            current_status=row["status"],
            code=ReasonCode.ALREADY_REFUNDED,
        )
    if row["status"] != OrderStatus.PAID.value:
        raise PreconditionFailed(
            f"Only paid orders can be refunded; order is {row['status']}.",
            current_status=row["status"],
            code=ReasonCode.INVALID_TRANSITION,
        )

    order_total = round_currency(row["total"])
    prior = ctx.store.select(REFUNDS, {"order_id": row["id"]}, columns=["amount"])
    already_refunded = sum_amounts(r["amount"] for r in prior)
    refundable = round_currency(order_total - already_refunded)

    amount = refundable if request.amount is None else round_currency(request.amount)
    if request.refund_type == RefundType.FULL.value and not amounts_equal(amount, refundable):
        raise ValidationError(
            f"A full refund must equal the refundable balance {refundable}.",
            code=ReasonCode.INVALID_AMOUNT,
            details={"refundable": refundable},
        )
    if amount <= 0 or exceeds(amount, refundable):
        raise MoneyMismatch(
            f"Refund {amount} exceeds the refundable balance {refundable}.",
            order_total=refundable,
            payment_total=amount,
            code=ReasonCode.REFUND_EXCEEDS_BALANCE,
        )

    refund = ctx.store.insert(REFUNDS, [{
        "order_id": row["id"],
        "restaurant_id": row["restaurant_id"],
        "branch_id": row.get("branch_id"),
        "shift_id": row.get("shift_id"),
        "amount": amount,
        "reason": request.reason,
        "refund_type": request.refund_type,
        "created_by": ctx.session.user_id,
        "created_at": ctx.clock.now_utc(),
    }])[0]

    total_refunded = round_currency(already_refunded + amount)
    fully_refunded = not falls_short(total_refunded, order_total)
    if fully_refunded:
        row = orders.transition(row, REFUND)

    logger.info(
        f"Refund {refund['id']} of {amount} on order {row['id']} "
        f"({total_refunded}/{order_total} refunded)"
    )
    return {
        "refund": refund,
        "order": row,
        "total_refunded": total_refunded,
        "remaining_refundable": max(ZERO, round_currency(order_total - total_refunded)),
        "is_fully_refunded": fully_refunded,
    }


PAYMENT_PROCEDURES = {
    COMPLETE_PAYMENT: complete_payment,
    COMPLETE_TABLE_PAYMENT: complete_table_payment,
    CREATE_REFUND: create_refund,
}
