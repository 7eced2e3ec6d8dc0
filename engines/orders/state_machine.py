"""
POS Orders Engine - Status State Machines
=========================================
Legal status transitions for orders, shifts and QR orders.

Order:
    open      → held                  (hold)
    held      → open                  (resume)
    open      → new | confirmed       (kitchen send, dine-in only)
    open      → voided                (void, reason required)
    open/held → cancelled             (cancel, reason required)
    open/confirmed/new → paid         (complete-payment only)
    paid      → refunded              (refund reaching the order total)
    paid      → open                  (reopen, audited)
    pending   → confirmed             (QR order accepted)
    confirmed → new                   (QR auto-dispatch to the kitchen)
    pending   → cancelled             (QR order rejected, reason required)
    open/confirmed → cancelled        (absorbed by a merge)

Shift:
    open → closed
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from core.commands.rejection import ReasonCode
from core.errors import AlreadyPaid, PreconditionFailed, ValidationError
from core.primitives.workflow import Transition, WorkflowDefinition, build_transitions


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class OrderStatus(str, Enum):
    OPEN = "open"
    HELD = "held"
    CONFIRMED = "confirmed"
    NEW = "new"
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    VOIDED = "voided"
    CANCELLED = "cancelled"


class OrderSource(str, Enum):
    POS = "pos"
    QR = "qr"


class OrderType(str, Enum):
    DINE_IN = "dine_in"
    TAKEAWAY = "takeaway"


class ShiftStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


# ══════════════════════════════════════════════════════════════
# STATUS GROUPS
# ══════════════════════════════════════════════════════════════

PAYABLE_STATUSES = frozenset({
    OrderStatus.OPEN.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.NEW.value,
})

# Items may be added, changed or voided only in these states.
EDITABLE_STATUSES = PAYABLE_STATUSES

TRANSFER_TARGET_STATUSES = frozenset({
    OrderStatus.OPEN.value,
    OrderStatus.CONFIRMED.value,
})

MERGEABLE_STATUSES = TRANSFER_TARGET_STATUSES

# Orders still on the floor (shown in the cashier's open-orders list).
ACTIVE_STATUSES = frozenset({
    OrderStatus.OPEN.value,
    OrderStatus.HELD.value,
    OrderStatus.CONFIRMED.value,
    OrderStatus.NEW.value,
})

SETTLED_STATUSES = frozenset({
    OrderStatus.PAID.value,
    OrderStatus.REFUNDED.value,
})


# ══════════════════════════════════════════════════════════════
# ACTIONS
# ══════════════════════════════════════════════════════════════

HOLD = "hold"
RESUME = "resume"
KITCHEN_DISPATCH = "kitchen_dispatch"
KITCHEN_CONFIRM = "kitchen_confirm"
VOID = "void"
CANCEL = "cancel"
PAY = "pay"
REFUND = "refund"
REOPEN = "reopen"
CONFIRM_QR = "confirm_qr"
DISPATCH = "dispatch"
REJECT_QR = "reject_qr"
ABSORB = "absorb"
CLOSE_SHIFT = "close"

REASON_REQUIRED_ACTIONS = frozenset({VOID, CANCEL, REJECT_QR})


def _t(action: str, from_states, to_state: OrderStatus) -> Transition:
    return Transition(
        action=action,
        from_states=frozenset(s.value for s in from_states),
        to_state=to_state.value,
    )


ORDER_WORKFLOW = WorkflowDefinition(
    name="Order",
    initial_states=frozenset({OrderStatus.OPEN.value, OrderStatus.PENDING.value}),
    terminal_states=frozenset({
        OrderStatus.VOIDED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
    }),
    transitions=build_transitions(
        _t(HOLD, {OrderStatus.OPEN}, OrderStatus.HELD),
        _t(RESUME, {OrderStatus.HELD}, OrderStatus.OPEN),
        _t(KITCHEN_DISPATCH, {OrderStatus.OPEN}, OrderStatus.NEW),
        _t(KITCHEN_CONFIRM, {OrderStatus.OPEN}, OrderStatus.CONFIRMED),
        _t(VOID, {OrderStatus.OPEN}, OrderStatus.VOIDED),
        _t(CANCEL, {OrderStatus.OPEN, OrderStatus.HELD}, OrderStatus.CANCELLED),
        _t(
            PAY,
            {OrderStatus.OPEN, OrderStatus.CONFIRMED, OrderStatus.NEW},
            OrderStatus.PAID,
        ),
        _t(REFUND, {OrderStatus.PAID}, OrderStatus.REFUNDED),
        _t(REOPEN, {OrderStatus.PAID}, OrderStatus.OPEN),
        _t(CONFIRM_QR, {OrderStatus.PENDING}, OrderStatus.CONFIRMED),
        _t(DISPATCH, {OrderStatus.CONFIRMED}, OrderStatus.NEW),
        _t(REJECT_QR, {OrderStatus.PENDING}, OrderStatus.CANCELLED),
        _t(ABSORB, {OrderStatus.OPEN, OrderStatus.CONFIRMED}, OrderStatus.CANCELLED),
    ),
)

SHIFT_WORKFLOW = WorkflowDefinition(
    name="Shift",
    initial_states=frozenset({ShiftStatus.OPEN.value}),
    terminal_states=frozenset({ShiftStatus.CLOSED.value}),
    transitions=build_transitions(
        Transition(
            action=CLOSE_SHIFT,
            from_states=frozenset({ShiftStatus.OPEN.value}),
            to_state=ShiftStatus.CLOSED.value,
        ),
    ),
)


# ══════════════════════════════════════════════════════════════
# GUARDS
# ══════════════════════════════════════════════════════════════

def assert_order_transition(action: str, current_status: str) -> str:
    """
    Return the target status of `action`, or raise.

    Paying an order that is already settled raises AlreadyPaid so the
    caller can tell a lost race from an ordinary wrong-state request.
    """
    rejection = ORDER_WORKFLOW.check(action, current_status)
    if rejection is None:
        return ORDER_WORKFLOW.target_state(action)

    if action == PAY and current_status in SETTLED_STATUSES:
        raise AlreadyPaid(
            f"Order is already {current_status}.",
            current_status=current_status,
            code=ReasonCode.ALREADY_PAID,
        )
    raise PreconditionFailed(
        rejection.message,
        current_status=current_status,
        code=rejection.code,
    )


def assert_shift_transition(action: str, current_status: str) -> str:
    rejection = SHIFT_WORKFLOW.check(action, current_status)
    if rejection is None:
        return SHIFT_WORKFLOW.target_state(action)
    raise PreconditionFailed(
        rejection.message,
        current_status=current_status,
        code=ReasonCode.SHIFT_NOT_OPEN,
    )


def require_reason(reason: Optional[str], action: str, max_length: int = 500) -> str:
    """Trimmed, length-capped reason; empty reasons are rejected."""
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError(
            f"A reason is required to {action} an order.",
            code=ReasonCode.REASON_REQUIRED,
        )
    return cleaned[:max_length]
