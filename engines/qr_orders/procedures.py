"""
POS QR Orders Engine - Atomic Procedures
========================================
confirm-qr-order and reject-qr-order.

Both run for a cashier assigned to a branch and only touch
qr-sourced orders of that branch. The status change is a
conditional update on status = pending, so a cashier losing a
race to another one gets PreconditionFailed, never a double
confirmation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from core.commands.rejection import ReasonCode
from core.context.session import ROLE_CASHIER
from core.errors import AccessDenied, PreconditionFailed, ValidationError, raise_rejection
from core.feature_flags.evaluator import FeatureFlagEvaluator
from core.feature_flags.registry import FLAG_KDS
from core.rpc.contracts import CONFIRM_QR_ORDER, REJECT_QR_ORDER
from core.rpc.host import ProcedureContext
from core.security.tenant_isolation import enforce_role
from core.store.filters import IsNull
from core.store.protocol import Row
from core.store.tables import ORDER_ITEMS
from engines.orders.policies import shift_open_policy
from engines.orders.repository import OrderRepository
from engines.orders.state_machine import (
    CONFIRM_QR,
    DISPATCH,
    ORDER_WORKFLOW,
    REJECT_QR,
    OrderSource,
    OrderStatus,
    assert_order_transition,
    require_reason,
)
from engines.shifts.repository import ShiftRepository

logger = logging.getLogger("pos.qr")

_ALREADY_CONFIRMED = frozenset({OrderStatus.CONFIRMED.value, OrderStatus.NEW.value})


def _cashier_branch(ctx: ProcedureContext, action: str) -> str:
    enforce_role(ctx.session, (ROLE_CASHIER,), action)
    if not ctx.session.branch_id:
        raise AccessDenied(
            "Cashier is not assigned to a branch.",
            code=ReasonCode.BRANCH_MISMATCH,
        )
    return ctx.session.branch_id


def _load_qr_order(ctx: ProcedureContext, orders: OrderRepository, payload: Dict[str, Any]) -> Row:
    order_id = payload.get("order_id")
    if not order_id:
        raise ValidationError("order_id is required.", code=ReasonCode.MISSING_FIELDS)
    row = orders.require_row(order_id, ctx.session, for_update=True)
    if row.get("branch_id") != ctx.session.branch_id:
        raise AccessDenied(
            "Order branch does not match the cashier's branch.",
            code=ReasonCode.BRANCH_MISMATCH,
        )
    if row.get("source") != OrderSource.QR.value:
        raise PreconditionFailed(
            "Only QR orders can be confirmed or rejected here.",
            current_status=row["status"],
            code=ReasonCode.NOT_QR_ORDER,
        )
    if row["status"] in _ALREADY_CONFIRMED:
        raise PreconditionFailed(
            "Order has already been confirmed.",
            current_status=row["status"],
            code=ReasonCode.ORDER_ALREADY_CONFIRMED,
        )
    return row


# ══════════════════════════════════════════════════════════════
# confirm-qr-order
# ══════════════════════════════════════════════════════════════

def confirm_qr_order(ctx: ProcedureContext, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    pending → confirmed, claiming the cashier's open shift.
    With the kitchen display on and auto-dispatch configured the
    order continues to new and its items are stamped as sent.
    """
    _cashier_branch(ctx, "confirm QR orders")
    orders = OrderRepository(ctx.store, ctx.clock)
    row = _load_qr_order(ctx, orders, payload)
    assert_order_transition(CONFIRM_QR, row["status"])
    if not row.get("table_id"):
        raise ValidationError(
            "QR order must be linked to a table.",
            code=ReasonCode.NO_TABLE_ASSIGNED,
        )

    shift = ShiftRepository(ctx.store).open_shift_for(
        ctx.session.user_id, ctx.session.restaurant_id,
    )
    raise_rejection(shift_open_policy(shift))

    confirmed = orders.transition(
        row, CONFIRM_QR,
        patch={"shift_id": shift["id"]},
        extra_filters={"source": OrderSource.QR.value},
    )

    settings = ctx.config.get_settings(row["restaurant_id"])
    kds_enabled = FeatureFlagEvaluator.is_enabled(
        FLAG_KDS, row["restaurant_id"], row.get("branch_id"), ctx.flags,
    )
    dispatched = False
    if kds_enabled and settings.qr_auto_dispatch:
        ctx.store.update(
            ORDER_ITEMS,
            {"order_id": row["id"], "voided": False, "kitchen_sent_at": IsNull()},
            {"kitchen_sent_at": ctx.clock.now_utc()},
        )
        confirmed = orders.transition(confirmed, DISPATCH)
        dispatched = True

    logger.info(
        f"QR order #{row['order_number']} confirmed by {ctx.session.user_id}"
        + (" and dispatched" if dispatched else "")
    )
    return {"order": confirmed, "shift_id": shift["id"], "dispatched": dispatched}


# ══════════════════════════════════════════════════════════════
# reject-qr-order
# ══════════════════════════════════════════════════════════════

def reject_qr_order(ctx: ProcedureContext, payload: Dict[str, Any]) -> Dict[str, Any]:
    _cashier_branch(ctx, "reject QR orders")
    reason = require_reason(payload.get("reason"), "reject")

    shift = ShiftRepository(ctx.store).open_shift_for(
        ctx.session.user_id, ctx.session.restaurant_id,
    )
    raise_rejection(shift_open_policy(shift))

    orders = OrderRepository(ctx.store, ctx.clock)
    row = _load_qr_order(ctx, orders, payload)
    if ORDER_WORKFLOW.is_terminal(row["status"]):
        raise PreconditionFailed(
            f"Order is already {row['status']} and cannot be modified.",
            current_status=row["status"],
            code=ReasonCode.INVALID_TRANSITION,
        )

    rejected = orders.transition(
        row, REJECT_QR,
        patch={"cancelled_reason": reason},
        extra_filters={"source": OrderSource.QR.value},
    )
    logger.info(f"QR order #{row['order_number']} rejected by {ctx.session.user_id}")
    return {"order": rejected, "reason": reason}


QR_ORDER_PROCEDURES = {
    CONFIRM_QR_ORDER: confirm_qr_order,
    REJECT_QR_ORDER: reject_qr_order,
}
