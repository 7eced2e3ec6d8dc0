"""
POS Shifts Engine - Application Service
=======================================
Cashier shift lifecycle, cash movements and end-of-shift
reconciliation.

A cashier has at most one open shift. A shift cannot close while
any of its orders is on hold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from core.audit.models import AuditAction, EntityType
from core.audit.trail import AuditTrail
from core.commands.rejection import ReasonCode
from core.context.session import ROLE_CASHIER, ROLE_OWNER, PosSession
from core.errors import PreconditionFailed
from core.security.tenant_isolation import enforce_role
from core.store.errors import StoreConflict
from core.store.filters import In
from core.store.protocol import DataStore, Row
from core.store.tables import ORDERS, PAYMENTS, REFUNDS, SHIFT_TRANSACTIONS, SHIFTS
from core.time.clock import Clock
from engines.orders.state_machine import (
    CLOSE_SHIFT,
    SETTLED_STATUSES,
    OrderStatus,
    ShiftStatus,
    assert_shift_transition,
)
from engines.shifts.commands import (
    CashMovementRequest,
    CloseShiftRequest,
    OpenShiftRequest,
)
from engines.shifts.reconciliation import ShiftReconciliation, reconcile_cash
from engines.shifts.repository import ShiftRepository

logger = logging.getLogger("pos.shifts")


@dataclass(frozen=True)
class ShiftCloseResult:
    shift: Row
    reconciliation: ShiftReconciliation


class ShiftService:
    """Shift and cash drawer application service."""

    def __init__(
        self,
        *,
        store: DataStore,
        session: PosSession,
        clock: Clock,
        audit: AuditTrail,
    ):
        self._store = store
        self._session = session
        self._clock = clock
        self._audit = audit
        self._shifts = ShiftRepository(store)

    def current_shift(self) -> Optional[Row]:
        return self._shifts.open_shift_for(
            self._session.user_id, self._session.restaurant_id,
        )

    def open_shift(self, request: OpenShiftRequest) -> Row:
        enforce_role(self._session, (ROLE_CASHIER, ROLE_OWNER), "open a shift")

        with self._store.transaction():
            existing = self._shifts.open_shift_for(
                self._session.user_id, for_update=True,
            )
            if existing is not None:
                raise PreconditionFailed(
                    "You already have an open shift. Close it before opening another.",
                    current_status=existing["status"],
                    code=ReasonCode.SHIFT_ALREADY_OPEN,
                    details={"shift_id": existing["id"]},
                )
            now = self._clock.now_utc()
            try:
                shift = self._store.insert(SHIFTS, [{
                    "cashier_id": self._session.user_id,
                    "restaurant_id": self._session.restaurant_id,
                    "branch_id": self._session.branch_id,
                    "opening_cash": request.opening_cash,
                    "closing_cash": None,
                    "status": ShiftStatus.OPEN.value,
                    "opened_at": now,
                    "closed_at": None,
                    "created_at": now,
                }])[0]
            except StoreConflict as exc:
                logger.info(f"Concurrent open shift for {self._session.user_id}: {exc}")
                raise PreconditionFailed(
                    "You already have an open shift. Close it before opening another.",
                    current_status=ShiftStatus.OPEN.value,
                    code=ReasonCode.SHIFT_ALREADY_OPEN,
                ) from exc

        logger.info(f"Shift {shift['id']} opened by {self._session.user_id}")
        self._audit.record(
            EntityType.SHIFT, shift["id"], AuditAction.SHIFT_OPEN,
            {"opening_cash": request.opening_cash},
        )
        return shift

    def record_cash_movement(self, request: CashMovementRequest) -> Row:
        with self._store.transaction():
            shift = self._shifts.require_row(request.shift_id, self._session)
            if shift["status"] != ShiftStatus.OPEN.value:
                raise PreconditionFailed(
                    "Cash movements need an open shift.",
                    current_status=shift["status"],
                    code=ReasonCode.SHIFT_NOT_OPEN,
                )
            movement = self._store.insert(SHIFT_TRANSACTIONS, [{
                "shift_id": shift["id"],
                "restaurant_id": shift["restaurant_id"],
                "branch_id": shift.get("branch_id"),
                "type": request.movement_type,
                "amount": request.amount,
                "reason": request.reason,
                "created_at": self._clock.now_utc(),
            }])[0]

        self._audit.record(
            EntityType.SHIFT_TRANSACTION, movement["id"], AuditAction.CASH_MOVEMENT,
            {
                "shift_id": shift["id"],
                "type": request.movement_type,
                "amount": request.amount,
                "reason": request.reason,
            },
        )
        return movement

    def list_cash_movements(self, shift_id: str) -> List[Row]:
        self._shifts.require_row(shift_id, self._session)
        return self._store.select(
            SHIFT_TRANSACTIONS, {"shift_id": shift_id}, order_by=["created_at"],
        )

    def held_order_count(self, shift_id: str) -> int:
        return len(self._store.select(
            ORDERS,
            {"shift_id": shift_id, "status": OrderStatus.HELD.value},
            columns=["id"],
        ))

    def reconcile(self, shift_id: str) -> ShiftReconciliation:
        shift = self._shifts.require_row(shift_id, self._session)
        return self._reconcile(shift, shift.get("closing_cash"))

    def close_shift(self, request: CloseShiftRequest) -> ShiftCloseResult:
        with self._store.transaction():
            shift = self._shifts.require_row(
                request.shift_id, self._session, for_update=True,
            )
            target = assert_shift_transition(CLOSE_SHIFT, shift["status"])

            held = self.held_order_count(shift["id"])
            if held:
                raise PreconditionFailed(
                    f"Cannot close shift with {held} held order(s). "
                    f"Resume or cancel them first.",
                    current_status=shift["status"],
                    code=ReasonCode.HELD_ORDERS_EXIST,
                    details={"held_orders": held},
                )

            now = self._clock.now_utc()
            updated = self._store.update(
                SHIFTS,
                {"id": shift["id"], "status": ShiftStatus.OPEN.value},
                {
                    "status": target,
                    "closing_cash": request.closing_cash,
                    "closed_at": now,
                    "notes": request.notes,
                },
            )
            if not updated:
                raise PreconditionFailed(
                    "Shift was closed by another session.",
                    current_status=ShiftStatus.CLOSED.value,
                    code=ReasonCode.RACE_CONDITION,
                )
            reconciliation = self._reconcile(updated[0], request.closing_cash)

        logger.info(
            f"Shift {shift['id']} closed: expected {reconciliation.expected_cash}, "
            f"counted {request.closing_cash}, difference {reconciliation.difference}"
        )
        self._audit.record(
            EntityType.SHIFT, shift["id"], AuditAction.SHIFT_CLOSE,
            reconciliation.to_dict(),
        )
        return ShiftCloseResult(shift=updated[0], reconciliation=reconciliation)

    def _reconcile(self, shift: Row, closing_cash) -> ShiftReconciliation:
        orders = self._store.select(
            ORDERS,
            {"shift_id": shift["id"], "status": In(SETTLED_STATUSES)},
            columns=["id", "payment_round", "change_amount"],
        )
        order_ids = [o["id"] for o in orders]
        payments: List[Row] = []
        refunds: List[Row] = []
        if order_ids:
            payments = self._store.select(PAYMENTS, {"order_id": In(order_ids)})
            refunds = self._store.select(REFUNDS, {"order_id": In(order_ids)})
        movements = self._store.select(SHIFT_TRANSACTIONS, {"shift_id": shift["id"]})
        return reconcile_cash(
            shift.get("opening_cash") or 0,
            orders,
            payments,
            refunds,
            movements,
            closing_cash=closing_cash,
        )
