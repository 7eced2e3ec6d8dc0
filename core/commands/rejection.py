"""
POS Commands - Rejections
=========================
Policy functions answer "may this happen?" without raising: they
return None to allow, or a RejectionReason naming the code, a
message for the cashier, and the policy that said no. The calling
service hands the reason to core.errors.raise_rejection, which
turns it into the matching PosError.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RejectionReason:
    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        for name in ("code", "message", "policy_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"RejectionReason.{name} must be a non-empty string.")


# ══════════════════════════════════════════════════════════════
# REASON CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """
    Known rejection codes. Extensible by engines.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Context / authorization ───────────────────────────────
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESTAURANT_MISMATCH = "RESTAURANT_MISMATCH"
    BRANCH_MISMATCH = "BRANCH_MISMATCH"
    ROLE_NOT_ALLOWED = "ROLE_NOT_ALLOWED"

    # ── Input ─────────────────────────────────────────────────
    MISSING_FIELDS = "MISSING_FIELDS"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"
    PAYMENT_METHOD_DISABLED = "PAYMENT_METHOD_DISABLED"
    FEATURE_DISABLED = "FEATURE_DISABLED"
    REASON_REQUIRED = "REASON_REQUIRED"
    INVALID_DISCOUNT = "INVALID_DISCOUNT"

    # ── Order state ───────────────────────────────────────────
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    ORDER_NOT_OPEN = "ORDER_NOT_OPEN"
    ORDER_NOT_EDITABLE = "ORDER_NOT_EDITABLE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ALREADY_PAID = "ALREADY_PAID"
    ALREADY_REFUNDED = "ALREADY_REFUNDED"
    ORDER_ALREADY_CONFIRMED = "ORDER_ALREADY_CONFIRMED"
    NOT_QR_ORDER = "NOT_QR_ORDER"
    NO_TABLE_ASSIGNED = "NO_TABLE_ASSIGNED"
    DINE_IN_ONLY = "DINE_IN_ONLY"
    RACE_CONDITION = "RACE_CONDITION"

    # ── Items ─────────────────────────────────────────────────
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    ITEM_VOIDED = "ITEM_VOIDED"
    SPLIT_WOULD_EMPTY_ORDER = "SPLIT_WOULD_EMPTY_ORDER"
    SAME_ORDER = "SAME_ORDER"

    # ── Money ─────────────────────────────────────────────────
    CARD_OVERPAYMENT = "CARD_OVERPAYMENT"
    UNDERPAYMENT = "UNDERPAYMENT"
    REFUND_EXCEEDS_BALANCE = "REFUND_EXCEEDS_BALANCE"

    # ── Shifts ────────────────────────────────────────────────
    SHIFT_NOT_FOUND = "SHIFT_NOT_FOUND"
    SHIFT_ALREADY_OPEN = "SHIFT_ALREADY_OPEN"
    SHIFT_NOT_OPEN = "SHIFT_NOT_OPEN"
    NO_OPEN_SHIFT = "NO_OPEN_SHIFT"
    HELD_ORDERS_EXIST = "HELD_ORDERS_EXIST"

    # ── General ───────────────────────────────────────────────
    UNEXPECTED = "UNEXPECTED"
