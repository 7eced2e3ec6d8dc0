"""
POS Payments Engine - Application Service
=========================================
Cashier-side entry point for settling orders.

Flow for every payment operation:
1. Build and validate the request locally
2. Optimistic pre-check against the current order state
   (fast feedback only; the procedure re-validates everything)
3. Invoke the atomic remote procedure
4. Run post-payment side effects (audit, inventory deduction)
   through the never-raise dispatcher

A RemoteOperationFailed from step 3 may hide a payment that did
commit before the response was lost. Re-read the order before
retrying.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.audit.models import AuditAction, EntityType
from core.audit.trail import AuditTrail
from core.commands.rejection import ReasonCode
from core.context.session import ROLE_CASHIER, ROLE_OWNER, PosSession
from core.errors import ValidationError
from core.events.dispatcher import DispatchReport, dispatch_side_effects
from core.feature_flags.evaluator import FeatureFlagEvaluator
from core.feature_flags.provider import FeatureFlagProvider
from core.primitives.money import sum_amounts, to_amount
from core.rpc.calls import call_procedure
from core.rpc.contracts import (
    COMPLETE_PAYMENT,
    COMPLETE_TABLE_PAYMENT,
    CREATE_REFUND,
    RemoteProcedureClient,
)
from core.security.tenant_isolation import enforce_role
from core.store.protocol import DataStore, Row
from core.store.tables import PAYMENTS, REFUNDS
from core.time.clock import Clock
from engines.orders.aggregate import Order
from engines.orders.repository import OrderRepository
from engines.orders.state_machine import PAY, PAYABLE_STATUSES, assert_order_transition
from engines.payments.commands import (
    CompletePaymentRequest,
    CompleteTablePaymentRequest,
    CreateRefundRequest,
    RefundType,
)
from engines.payments.methods import ALLOWED_PAYMENT_METHODS
from engines.payments.validation import PaymentAssessment, PaymentLine, assess_payment

logger = logging.getLogger("pos.payments")


@dataclass(frozen=True)
class PaymentCompletion:
    order: Order
    payments: Tuple[Dict[str, Any], ...]
    order_total: Decimal
    payment_total: Decimal
    change: Decimal
    side_effects: DispatchReport
    inventory_warnings: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class TableCheckout:
    orders: Tuple[Order, ...]
    payments: Tuple[Dict[str, Any], ...]
    combined_total: Decimal
    payment_total: Decimal
    change: Decimal
    side_effects: DispatchReport


@dataclass(frozen=True)
class RefundResult:
    refund: Dict[str, Any]
    order: Order
    total_refunded: Decimal
    remaining_refundable: Decimal
    is_fully_refunded: bool
    side_effects: Optional[DispatchReport] = field(default=None, compare=False)


class PaymentService:
    """Payment completion, table checkout and refunds."""

    def __init__(
        self,
        *,
        store: DataStore,
        session: PosSession,
        clock: Clock,
        rpc: RemoteProcedureClient,
        audit: AuditTrail,
        flags: FeatureFlagProvider | None = None,
        inventory=None,
    ):
        self._store = store
        self._session = session
        self._clock = clock
        self._rpc = rpc
        self._audit = audit
        self._flags = flags
        self._inventory = inventory
        self._orders = OrderRepository(store, clock)

    def enabled_methods(self, branch_id: Optional[str] = None) -> List[str]:
        """Payment methods the cashier's branch accepts, in display order."""
        enabled = FeatureFlagEvaluator.enabled_payment_methods(
            ALLOWED_PAYMENT_METHODS,
            self._session.restaurant_id,
            branch_id or self._session.branch_id,
            self._flags,
        )
        return [m for m in ALLOWED_PAYMENT_METHODS if m in enabled]

    def precheck(self, order_id: str, payments: Iterable[Any]) -> PaymentAssessment:
        """
        Validate a proposed payment against the order as currently
        stored. Nothing is written.
        """
        request = CompletePaymentRequest(order_id=order_id, payments=tuple(payments))
        order = self._orders.load(order_id, self._session)
        if order.status not in PAYABLE_STATUSES:
            assert_order_transition(PAY, order.status)
        self._check_methods(order.branch_id, request.payments)
        return assess_payment(order.computed_totals().total, request.payments)

    def precheck_table(
        self,
        order_ids: Iterable[str],
        payments: Iterable[Any],
    ) -> PaymentAssessment:
        """
        The table form of precheck(): every order must be payable and
        accept every tendered method on its own branch.
        """
        request = CompleteTablePaymentRequest(
            order_ids=tuple(order_ids), payments=tuple(payments),
        )
        totals = []
        for order_id in request.order_ids:
            order = self._orders.load(order_id, self._session)
            if order.status not in PAYABLE_STATUSES:
                assert_order_transition(PAY, order.status)
            self._check_methods(order.branch_id, request.payments)
            totals.append(order.computed_totals().total)
        return assess_payment(sum_amounts(totals), request.payments)

    # ══════════════════════════════════════════════════════════
    # COMPLETE PAYMENT
    # ══════════════════════════════════════════════════════════

    def complete_payment(self, order_id: str, payments: Iterable[Any]) -> PaymentCompletion:
        enforce_role(self._session, (ROLE_CASHIER, ROLE_OWNER), "take payments")
        request = CompletePaymentRequest(order_id=order_id, payments=tuple(payments))
        self.precheck(request.order_id, request.payments)

        data = call_procedure(self._rpc, COMPLETE_PAYMENT, request.to_payload())
        order = Order.from_row(data["order"], self._orders.load_items(order_id))
        payment_rows = tuple(data.get("payments") or ())
        change = to_amount(data["change"])

        report = dispatch_side_effects(COMPLETE_PAYMENT, [
            ("audit", lambda: self._audit.record(
                EntityType.ORDER, order.id, AuditAction.ORDER_COMPLETE,
                {
                    "order_number": order.order_number,
                    "total": data["order_total"],
                    "payment_total": data["payment_total"],
                    "change": data["change"],
                    "methods": sorted({p["method"] for p in payment_rows}),
                },
            )),
            *self._inventory_effects([order.id]),
        ])

        warnings: List[Dict[str, Any]] = []
        deduction = report.results.get(f"inventory:{order.id}")
        if deduction is not None:
            warnings.extend(deduction.warnings)

        logger.info(f"Payment completed for order #{order.order_number} ({order.id})")
        return PaymentCompletion(
            order=order,
            payments=payment_rows,
            order_total=to_amount(data["order_total"]),
            payment_total=to_amount(data["payment_total"]),
            change=change,
            side_effects=report,
            inventory_warnings=tuple(warnings),
        )

    def complete_table_payment(
        self,
        order_ids: Iterable[str],
        payments: Iterable[Any],
    ) -> TableCheckout:
        """Settle every order of a table with one set of payments."""
        enforce_role(self._session, (ROLE_CASHIER, ROLE_OWNER), "take payments")
        request = CompleteTablePaymentRequest(
            order_ids=tuple(order_ids), payments=tuple(payments),
        )
        self.precheck_table(request.order_ids, request.payments)

        data = call_procedure(self._rpc, COMPLETE_TABLE_PAYMENT, request.to_payload())
        orders = tuple(
            Order.from_row(row, self._orders.load_items(row["id"]))
            for row in data["orders"]
        )
        payment_rows = tuple(data.get("payments") or ())

        effects = [
            (f"audit:{order.id}", self._checkout_audit(order, data, len(orders)))
            for order in orders
        ]
        effects.extend(self._inventory_effects(o.id for o in orders))
        report = dispatch_side_effects(COMPLETE_TABLE_PAYMENT, effects)

        return TableCheckout(
            orders=orders,
            payments=payment_rows,
            combined_total=to_amount(data["combined_total"]),
            payment_total=to_amount(data["payment_total"]),
            change=to_amount(data["change"]),
            side_effects=report,
        )

    # ══════════════════════════════════════════════════════════
    # REFUNDS
    # ══════════════════════════════════════════════════════════

    def create_refund(
        self,
        order_id: str,
        reason: str,
        amount: Any = None,
        refund_type: str = RefundType.PARTIAL.value,
    ) -> RefundResult:
        enforce_role(self._session, (ROLE_CASHIER, ROLE_OWNER), "refund orders")
        request = CreateRefundRequest(
            order_id=order_id, reason=reason, refund_type=refund_type, amount=amount,
        )

        data = call_procedure(self._rpc, CREATE_REFUND, request.to_payload())
        refund = data["refund"]
        order = Order.from_row(data["order"], self._orders.load_items(order_id))

        report = dispatch_side_effects(CREATE_REFUND, [
            ("audit", lambda: self._audit.record(
                EntityType.REFUND, refund["id"], AuditAction.REFUND_CREATE,
                {
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "amount": refund["amount"],
                    "refund_type": refund["refund_type"],
                    "reason": refund["reason"],
                    "is_fully_refunded": data["is_fully_refunded"],
                },
            )),
        ])

        return RefundResult(
            refund=refund,
            order=order,
            total_refunded=to_amount(data["total_refunded"]),
            remaining_refundable=to_amount(data["remaining_refundable"]),
            is_fully_refunded=bool(data["is_fully_refunded"]),
            side_effects=report,
        )

    # ══════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════

    def list_payments(self, order_id: str, current_round_only: bool = True) -> List[Row]:
        row = self._orders.require_row(order_id, self._session)
        filters: Dict[str, Any] = {"order_id": order_id}
        if current_round_only:
            filters["payment_round"] = int(row.get("payment_round") or 1)
        return self._store.select(PAYMENTS, filters, order_by=["created_at"])

    def list_refunds(self, order_id: str) -> List[Row]:
        self._orders.require_row(order_id, self._session)
        return self._store.select(REFUNDS, {"order_id": order_id}, order_by=["created_at"])

    # ══════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════

    def _check_methods(
        self,
        branch_id: Optional[str],
        payments: Iterable[PaymentLine],
    ) -> None:
        enabled = set(self.enabled_methods(branch_id))
        disabled = sorted({p.method.value for p in payments} - enabled)
        if disabled:
            raise ValidationError(
                f"Payment method(s) not enabled for this branch: {', '.join(disabled)}.",
                code=ReasonCode.PAYMENT_METHOD_DISABLED,
                details={"disabled_methods": disabled},
            )

    def _inventory_effects(self, order_ids: Iterable[str]):
        if self._inventory is None:
            return []
        return [
            (f"inventory:{order_id}",
             lambda order_id=order_id: self._inventory.deduct_for_order(order_id))
            for order_id in order_ids
        ]

    def _checkout_audit(self, order: Order, data: Dict[str, Any], order_count: int):
        def record():
            return self._audit.record(
                EntityType.ORDER, order.id, AuditAction.TABLE_CHECKOUT,
                {
                    "order_number": order.order_number,
                    "table_id": order.table_id,
                    "total": order.total,
                    "orders_settled": order_count,
                    "combined_total": data["combined_total"],
                    "change": order.change_amount,
                },
            )
        return record
