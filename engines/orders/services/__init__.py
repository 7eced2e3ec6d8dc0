"""
POS Orders Engine - Application Service
=======================================
Order entry for the cashier: create orders, edit lines, hold and
resume, send to the kitchen, void, cancel and reopen.

Every mutation runs in one store transaction, re-reads the order
inside it and applies status changes as conditional updates.
Totals are recomputed from the stored items after every line
change; client-supplied totals are never written.

Audit entries are written after the transaction commits and never
fail the operation.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from core.audit.models import AuditAction, EntityType
from core.audit.trail import AuditTrail
from core.commands.rejection import ReasonCode
from core.config.rules import ConfigStore
from core.context.session import ROLE_CASHIER, ROLE_OWNER, PosSession
from core.errors import PreconditionFailed, ValidationError, raise_rejection
from core.feature_flags.evaluator import FeatureFlagEvaluator
from core.feature_flags.provider import FeatureFlagProvider
from core.feature_flags.registry import FLAG_KDS
from core.primitives.money import ZERO
from core.security.tenant_isolation import enforce_role, scope_filters
from core.store.filters import In, IsNull
from core.store.protocol import DataStore
from core.store.tables import ORDER_ITEMS, PAYMENTS, REFUNDS
from core.time.clock import Clock
from engines.orders.aggregate import Order
from engines.orders.commands import (
    AddItemRequest,
    ApplyDiscountRequest,
    CreateOrderRequest,
)
from engines.orders.policies import (
    item_not_voided_policy,
    kitchen_send_policy,
    order_editable_policy,
    shift_open_policy,
)
from engines.orders.repository import OrderRepository
from engines.orders.state_machine import (
    ACTIVE_STATUSES,
    CANCEL,
    HOLD,
    KITCHEN_CONFIRM,
    KITCHEN_DISPATCH,
    REOPEN,
    RESUME,
    VOID,
    OrderSource,
    OrderStatus,
    require_reason,
)
from engines.shifts.repository import ShiftRepository

logger = logging.getLogger("pos.orders")


class OrderService:
    """Order entry application service."""

    def __init__(
        self,
        *,
        store: DataStore,
        session: PosSession,
        clock: Clock,
        config: ConfigStore,
        audit: AuditTrail,
        flags: FeatureFlagProvider | None = None,
    ):
        self._store = store
        self._session = session
        self._clock = clock
        self._config = config
        self._audit = audit
        self._flags = flags
        self._orders = OrderRepository(store, clock)
        self._shifts = ShiftRepository(store)

    @property
    def repository(self) -> OrderRepository:
        return self._orders

    # ══════════════════════════════════════════════════════════
    # ORDER LIFECYCLE
    # ══════════════════════════════════════════════════════════

    def create_order(self, request: CreateOrderRequest) -> Order:
        enforce_role(self._session, (ROLE_CASHIER, ROLE_OWNER), "create orders")
        settings = self._config.get_settings(self._session.restaurant_id)

        with self._store.transaction():
            shift = self._shifts.open_shift_for(
                self._session.user_id, self._session.restaurant_id,
            )
            raise_rejection(shift_open_policy(shift))

            row = self._orders.insert_order({
                "restaurant_id": self._session.restaurant_id,
                "branch_id": self._session.branch_id or shift.get("branch_id"),
                "shift_id": shift["id"],
                "table_id": request.table_id,
                "order_number": self._orders.next_order_number(
                    self._session.restaurant_id
                ),
                "status": OrderStatus.OPEN.value,
                "source": OrderSource.POS.value,
                "order_type": request.order_type,
                "customer_name": request.customer_name,
                "notes": request.notes,
                "subtotal": ZERO,
                "discount_type": None,
                "discount_value": None,
                "discount_amount": ZERO,
                "service_charge_rate": settings.service_charge_rate,
                "service_charge": ZERO,
                "tax_rate": settings.tax_rate,
                "tax_amount": ZERO,
                "total": ZERO,
                "change_amount": ZERO,
                "payment_round": 1,
                "cancelled_reason": None,
                "paid_at": None,
            })

        logger.info(f"Order #{row['order_number']} ({row['id']}) created")
        self._audit.record(
            EntityType.ORDER, row["id"], AuditAction.ORDER_CREATE,
            {
                "order_number": row["order_number"],
                "shift_id": row["shift_id"],
                "table_id": row["table_id"],
                "order_type": row["order_type"],
            },
        )
        return Order.from_row(row)

    def get_order(self, order_id: str) -> Order:
        return self._orders.load(order_id, self._session)

    def hold_order(self, order_id: str) -> Order:
        return self._simple_transition(order_id, HOLD, AuditAction.ORDER_HOLD)

    def resume_order(self, order_id: str) -> Order:
        return self._simple_transition(order_id, RESUME, AuditAction.ORDER_RESUME)

    def void_order(self, order_id: str, reason: str) -> Order:
        cleaned = require_reason(reason, "void")
        return self._simple_transition(
            order_id, VOID, AuditAction.ORDER_VOIDED,
            patch={"cancelled_reason": cleaned},
            details={"reason": cleaned},
        )

    def cancel_order(self, order_id: str, reason: str) -> Order:
        cleaned = require_reason(reason, "cancel")
        return self._simple_transition(
            order_id, CANCEL, AuditAction.ORDER_CANCEL,
            patch={"cancelled_reason": cleaned},
            details={"reason": cleaned},
        )

    def reopen_order(self, order_id: str, reason: Optional[str] = None) -> Order:
        """
        paid → open for re-editing.

        Payment rows of the completed round are kept; bumping
        payment_round marks them superseded. Orders that already have
        refunds cannot be reopened.
        """
        enforce_role(self._session, (ROLE_CASHIER, ROLE_OWNER), "reopen orders")

        with self._store.transaction():
            row = self._orders.require_row(order_id, self._session, for_update=True)
            if self._store.select(REFUNDS, {"order_id": order_id}, columns=["id"]):
                raise PreconditionFailed(
                    "Orders with refunds cannot be reopened.",
                    current_status=row["status"],
                    code=ReasonCode.INVALID_TRANSITION,
                )
            previous_round = int(row.get("payment_round") or 1)
            superseded = self._store.select(
                PAYMENTS,
                {"order_id": order_id, "payment_round": previous_round},
                columns=["id"],
            )
            updated = self._orders.transition(
                row, REOPEN,
                patch={
                    "payment_round": previous_round + 1,
                    "paid_at": None,
                    "change_amount": ZERO,
                },
            )

        self._audit.record(
            EntityType.ORDER, order_id, AuditAction.ORDER_REOPEN,
            {
                "order_number": updated["order_number"],
                "previous_status": row["status"],
                "superseded_payment_round": previous_round,
                "superseded_payments": [p["id"] for p in superseded],
                "reason": (reason or "").strip() or None,
            },
        )
        return self._orders.load(order_id)

    def send_to_kitchen(self, order_id: str) -> Order:
        """
        Stamp unsent items with kitchen_sent_at. From open, the order
        moves to new (kitchen display enabled) or confirmed.
        """
        with self._store.transaction():
            row = self._orders.require_row(order_id, self._session, for_update=True)
            raise_rejection(kitchen_send_policy(row), ValidationError)
            raise_rejection(
                order_editable_policy(row), PreconditionFailed,
                current_status=row["status"],
            )

            unsent = self._store.select(
                ORDER_ITEMS,
                {"order_id": order_id, "voided": False, "kitchen_sent_at": IsNull()},
                columns=["id"],
            )
            if not unsent:
                raise ValidationError(
                    "There are no new items to send to the kitchen.",
                    code=ReasonCode.MISSING_FIELDS,
                )
            now = self._clock.now_utc()
            self._store.update(
                ORDER_ITEMS,
                {"id": In(i["id"] for i in unsent)},
                {"kitchen_sent_at": now},
            )

            previous_status = row["status"]
            if previous_status == OrderStatus.OPEN.value:
                kds_enabled = FeatureFlagEvaluator.is_enabled(
                    FLAG_KDS, row["restaurant_id"], row.get("branch_id"), self._flags,
                )
                action = KITCHEN_DISPATCH if kds_enabled else KITCHEN_CONFIRM
                row = self._orders.transition(row, action)

        self._audit.record(
            EntityType.ORDER, order_id, AuditAction.SEND_TO_KITCHEN,
            {
                "items_sent": len(unsent),
                "previous_status": previous_status,
                "new_status": row["status"],
            },
        )
        return self._orders.load(order_id)

    # ══════════════════════════════════════════════════════════
    # LINE ITEMS
    # ══════════════════════════════════════════════════════════

    def add_item(self, request: AddItemRequest) -> Order:
        with self._store.transaction():
            row = self._editable_order(request.order_id)
            self._orders.insert_item(
                {
                    "order_id": row["id"],
                    "restaurant_id": row["restaurant_id"],
                    "menu_item_id": request.menu_item_id,
                    "name": request.name,
                    "price": request.price,
                    "quantity": request.quantity,
                    "notes": request.notes,
                    "voided": False,
                    "void_reason": None,
                    "kitchen_sent_at": None,
                    "created_at": self._clock.now_utc(),
                },
                [m.to_row() for m in request.modifiers],
            )
            self._orders.recompute_totals(row["id"])
        return self._orders.load(request.order_id)

    def update_item_quantity(self, item_id: str, quantity: int) -> Order:
        """Set a line's quantity; zero or less removes the line."""
        if not isinstance(quantity, int):
            raise ValidationError(
                "quantity must be an integer.", code=ReasonCode.INVALID_AMOUNT,
            )
        with self._store.transaction():
            item = self._orders.require_item_row(item_id)
            row = self._editable_order(item["order_id"])
            raise_rejection(item_not_voided_policy(item))
            if quantity <= 0:
                self._orders.delete_item(item_id)
            else:
                self._orders.patch_item(item_id, {"quantity": quantity})
            self._orders.recompute_totals(row["id"])

        self._audit.record(
            EntityType.ORDER_ITEM, item_id, AuditAction.ITEM_QTY_CHANGED,
            {
                "order_id": row["id"],
                "name": item["name"],
                "old_quantity": item["quantity"],
                "new_quantity": max(quantity, 0),
            },
        )
        return self._orders.load(row["id"])

    def remove_item(self, item_id: str) -> Order:
        return self.update_item_quantity(item_id, 0)

    def void_item(self, item_id: str, reason: str) -> Order:
        """Voided lines stay on the order for audit and leave the totals."""
        cleaned = require_reason(reason, "void an item on")
        with self._store.transaction():
            item = self._orders.require_item_row(item_id)
            row = self._editable_order(item["order_id"])
            raise_rejection(item_not_voided_policy(item))
            self._orders.patch_item(item_id, {"voided": True, "void_reason": cleaned})
            self._orders.recompute_totals(row["id"])

        self._audit.record(
            EntityType.ORDER_ITEM, item_id, AuditAction.ITEM_VOID,
            {
                "order_id": row["id"],
                "name": item["name"],
                "quantity": item["quantity"],
                "price": item["price"],
                "reason": cleaned,
            },
        )
        return self._orders.load(row["id"])

    def set_item_notes(self, item_id: str, notes: Optional[str]) -> Order:
        with self._store.transaction():
            item = self._orders.require_item_row(item_id)
            row = self._editable_order(item["order_id"])
            self._orders.patch_item(item_id, {"notes": (notes or "").strip() or None})
        return self._orders.load(row["id"])

    def set_order_notes(self, order_id: str, notes: Optional[str]) -> Order:
        with self._store.transaction():
            row = self._orders.require_row(order_id, self._session, for_update=True)
            if row["status"] not in ACTIVE_STATUSES:
                raise PreconditionFailed(
                    f"Notes cannot be changed while the order is {row['status']}.",
                    current_status=row["status"],
                    code=ReasonCode.ORDER_NOT_EDITABLE,
                )
            self._orders.patch(order_id, {"notes": (notes or "").strip() or None})
        return self._orders.load(order_id)

    def apply_discount(self, request: ApplyDiscountRequest) -> Order:
        with self._store.transaction():
            row = self._editable_order(request.order_id)
            self._orders.patch(row["id"], {
                "discount_type": request.discount_type,
                "discount_value": request.discount_value,
            })
            updated = self._orders.recompute_totals(row["id"])

        self._audit.record(
            EntityType.ORDER, row["id"], AuditAction.DISCOUNT_APPLY,
            {
                "discount_type": request.discount_type,
                "discount_value": request.discount_value,
                "discount_amount": updated["discount_amount"],
                "total": updated["total"],
            },
        )
        return self._orders.load(row["id"])

    def clear_discount(self, order_id: str) -> Order:
        return self.apply_discount(
            ApplyDiscountRequest(order_id=order_id, discount_type=None)
        )

    # ══════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════

    def list_open_orders(self) -> List[Order]:
        filters = scope_filters(self._session)
        filters["status"] = In(ACTIVE_STATUSES)
        rows = self._orders.list_rows(filters, order_by=("order_number",))
        return [Order.from_row(r) for r in rows]

    def list_held_orders(self, shift_id: str) -> List[Order]:
        filters = scope_filters(self._session)
        filters.update({"shift_id": shift_id, "status": OrderStatus.HELD.value})
        return [Order.from_row(r) for r in self._orders.list_rows(filters)]

    def list_pending_qr_orders(self) -> List[Order]:
        filters = scope_filters(self._session)
        filters.update({
            "source": OrderSource.QR.value,
            "status": OrderStatus.PENDING.value,
        })
        rows = self._orders.list_rows(filters, order_by=("created_at",))
        return [Order.from_row(r) for r in rows]

    def list_shift_orders(self, shift_id: str, limit: Optional[int] = None) -> List[Order]:
        filters = scope_filters(self._session)
        filters["shift_id"] = shift_id
        return [
            Order.from_row(r)
            for r in self._orders.list_rows(filters, limit=limit)
        ]

    # ══════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════

    def _editable_order(self, order_id: str) -> dict:
        row = self._orders.require_row(order_id, self._session, for_update=True)
        raise_rejection(
            order_editable_policy(row), PreconditionFailed,
            current_status=row["status"],
        )
        return row

    def _simple_transition(
        self,
        order_id: str,
        action: str,
        audit_action: AuditAction,
        patch: Optional[dict] = None,
        details: Optional[dict] = None,
    ) -> Order:
        with self._store.transaction():
            row = self._orders.require_row(order_id, self._session, for_update=True)
            updated = self._orders.transition(row, action, patch=patch)

        payload = {
            "order_number": row["order_number"],
            "previous_status": row["status"],
            "new_status": updated["status"],
        }
        payload.update(details or {})
        self._audit.record(EntityType.ORDER, order_id, audit_action, payload)
        return self._orders.load(order_id)
