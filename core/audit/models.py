"""
POS Core Audit - Immutable Audit Models
=======================================
Append-only audit log entries. Frozen: once created, never
modified. Deletion of audit records is forbidden.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict


# ══════════════════════════════════════════════════════════════
# ACTIONS AND ENTITY TYPES (closed sets)
# ══════════════════════════════════════════════════════════════

class AuditAction(str, Enum):
    SHIFT_OPEN = "SHIFT_OPEN"
    SHIFT_CLOSE = "SHIFT_CLOSE"
    CASH_MOVEMENT = "CASH_MOVEMENT"

    ORDER_CREATE = "ORDER_CREATE"
    ORDER_HOLD = "ORDER_HOLD"
    ORDER_RESUME = "ORDER_RESUME"
    ORDER_CANCEL = "ORDER_CANCEL"
    ORDER_VOIDED = "ORDER_VOIDED"
    ORDER_COMPLETE = "ORDER_COMPLETE"
    ORDER_REOPEN = "ORDER_REOPEN"
    ORDER_CONFIRMED = "ORDER_CONFIRMED"
    ORDER_MOVED_TABLE = "ORDER_MOVED_TABLE"
    QR_ORDER_REJECTED = "QR_ORDER_REJECTED"
    SEND_TO_KITCHEN = "SEND_TO_KITCHEN"
    DISCOUNT_APPLY = "DISCOUNT_APPLY"

    ITEM_VOID = "ITEM_VOID"
    ITEM_QTY_CHANGED = "ITEM_QTY_CHANGED"
    TRANSFER_ORDER_ITEM = "TRANSFER_ORDER_ITEM"
    SPLIT_ORDER = "SPLIT_ORDER"
    MERGE_ORDERS = "MERGE_ORDERS"

    TABLE_CHECKOUT = "TABLE_CHECKOUT"
    REFUND_CREATE = "REFUND_CREATE"

    INVENTORY_SALE_DEDUCTION_DONE = "INVENTORY_SALE_DEDUCTION_DONE"
    INVENTORY_DEDUCTION_FAILED = "INVENTORY_DEDUCTION_FAILED"
    INVENTORY_NEGATIVE_AFTER_SALE = "INVENTORY_NEGATIVE_AFTER_SALE"

    MENU_FAVORITE_TOGGLED = "MENU_FAVORITE_TOGGLED"


class EntityType(str, Enum):
    SHIFT = "shift"
    ORDER = "order"
    ORDER_ITEM = "order_item"
    PAYMENT = "payment"
    REFUND = "refund"
    SHIFT_TRANSACTION = "shift_transaction"
    INVENTORY_TRANSACTION = "inventory_transaction"
    MENU_ITEM = "menu_item"


# ══════════════════════════════════════════════════════════════
# AUDIT LOG ENTRY
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AuditLogEntry:
    """
    Immutable record of a state-changing action.

    details is a structured payload; values are JSON-safe.
    """

    entry_id: str
    user_id: str
    restaurant_id: str
    entity_type: EntityType
    entity_id: str
    action: AuditAction
    created_at: datetime
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.action, AuditAction):
            raise ValueError(f"action must be AuditAction, got '{self.action}'.")
        if not isinstance(self.entity_type, EntityType):
            raise ValueError(
                f"entity_type must be EntityType, got '{self.entity_type}'."
            )
        if not self.entity_id:
            raise ValueError("entity_id must be non-empty.")

    def to_row(self) -> dict:
        return {
            "id": self.entry_id,
            "user_id": self.user_id,
            "restaurant_id": self.restaurant_id,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "action": self.action.value,
            "details": dict(self.details),
            "created_at": self.created_at,
        }
