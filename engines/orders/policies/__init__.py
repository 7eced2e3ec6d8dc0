"""
POS Orders Engine - Policies
============================
Each policy returns None (allowed) or a RejectionReason.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from engines.orders.state_machine import (
    EDITABLE_STATUSES,
    OrderType,
    ShiftStatus,
)


def order_editable_policy(order: Mapping[str, Any]) -> Optional[RejectionReason]:
    """Items may only change while the order is open, confirmed or new."""
    if order["status"] in EDITABLE_STATUSES:
        return None
    return RejectionReason(
        code=ReasonCode.ORDER_NOT_EDITABLE,
        message=f"Order items cannot be changed while the order is {order['status']}.",
        policy_name="order_editable_policy",
    )


def kitchen_send_policy(order: Mapping[str, Any]) -> Optional[RejectionReason]:
    """Only dine-in orders seated at a table go to the kitchen display."""
    if order.get("order_type") == OrderType.DINE_IN.value and order.get("table_id"):
        return None
    return RejectionReason(
        code=ReasonCode.DINE_IN_ONLY,
        message="Only dine-in orders with a table can be sent to the kitchen.",
        policy_name="kitchen_send_policy",
    )


def shift_open_policy(shift: Optional[Mapping[str, Any]]) -> Optional[RejectionReason]:
    if shift is not None and shift.get("status") == ShiftStatus.OPEN.value:
        return None
    return RejectionReason(
        code=ReasonCode.NO_OPEN_SHIFT,
        message="Open a shift before taking orders.",
        policy_name="shift_open_policy",
    )


def item_not_voided_policy(item: Mapping[str, Any]) -> Optional[RejectionReason]:
    if not item.get("voided"):
        return None
    return RejectionReason(
        code=ReasonCode.ITEM_VOIDED,
        message="Voided items cannot be changed or moved.",
        policy_name="item_not_voided_policy",
    )


__all__ = [
    "item_not_voided_policy",
    "kitchen_send_policy",
    "order_editable_policy",
    "shift_open_policy",
]
