"""
POS QR Orders Engine - Application Services
===========================================
QrOrderService is the cashier's view of incoming QR orders:
list what is pending, confirm or reject through the atomic
procedures, then audit.

submit_qr_order() is the customer-side intake. It creates a
pending, qr-sourced order for a table with no shift; a cashier's
shift claims it on confirmation.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping

from core.audit.models import AuditAction, EntityType
from core.audit.trail import AuditTrail
from core.commands.rejection import ReasonCode
from core.config.rules import ConfigStore
from core.context.session import PosSession
from core.errors import ValidationError
from core.primitives.money import ZERO, round_currency
from core.rpc.calls import call_procedure
from core.rpc.contracts import CONFIRM_QR_ORDER, REJECT_QR_ORDER, RemoteProcedureClient
from core.store.filters import In
from core.store.protocol import DataStore, Row
from core.store.tables import MENU_ITEMS
from core.time.clock import Clock
from engines.orders.aggregate import Order
from engines.orders.repository import OrderRepository
from engines.orders.services import OrderService
from engines.orders.state_machine import OrderSource, OrderStatus, OrderType
from engines.qr_orders.commands import SubmitQrOrderRequest

logger = logging.getLogger("pos.qr")


class QrOrderService:
    """Cashier-side handling of QR orders."""

    def __init__(
        self,
        *,
        store: DataStore,
        session: PosSession,
        clock: Clock,
        rpc: RemoteProcedureClient,
        audit: AuditTrail,
        orders: OrderService,
    ):
        self._store = store
        self._session = session
        self._clock = clock
        self._rpc = rpc
        self._audit = audit
        self._orders = orders
        self._repository = OrderRepository(store, clock)

    def list_pending(self) -> List[Order]:
        return self._orders.list_pending_qr_orders()

    def confirm_order(self, order_id: str) -> Order:
        data = call_procedure(self._rpc, CONFIRM_QR_ORDER, {"order_id": order_id})
        order = self._repository.load(order_id)
        self._audit.record(
            EntityType.ORDER, order_id, AuditAction.ORDER_CONFIRMED,
            {
                "order_number": order.order_number,
                "table_id": order.table_id,
                "shift_id": data.get("shift_id"),
                "auto_dispatched": bool(data.get("dispatched")),
                "new_status": order.status,
            },
        )
        return order

    def reject_order(self, order_id: str, reason: str) -> Order:
        data = call_procedure(
            self._rpc, REJECT_QR_ORDER, {"order_id": order_id, "reason": reason},
        )
        order = self._repository.load(order_id)
        self._audit.record(
            EntityType.ORDER, order_id, AuditAction.QR_ORDER_REJECTED,
            {
                "order_number": order.order_number,
                "table_id": order.table_id,
                "reason": data.get("reason"),
            },
        )
        return order


def _menu_rows(store: DataStore, request: SubmitQrOrderRequest) -> Dict[str, Row]:
    ids = {line.menu_item_id for line in request.lines}
    rows = {
        r["id"]: r
        for r in store.select(
            MENU_ITEMS,
            {"restaurant_id": request.restaurant_id, "id": In(ids)},
        )
    }
    missing = sorted(ids - set(rows))
    if missing:
        raise ValidationError(
            "Some items are not on this restaurant's menu.",
            code=ReasonCode.ITEM_NOT_FOUND,
            details={"menu_item_ids": missing},
        )
    unavailable = sorted(
        i for i, r in rows.items() if r.get("is_available") is False
    )
    if unavailable:
        raise ValidationError(
            "Some items are currently unavailable.",
            code=ReasonCode.ITEM_NOT_FOUND,
            details={"menu_item_ids": unavailable},
        )
    return rows


def submit_qr_order(
    *,
    store: DataStore,
    clock: Clock,
    config: ConfigStore,
    request: SubmitQrOrderRequest,
) -> Order:
    """Create a pending QR order priced from the menu."""
    settings = config.get_settings(request.restaurant_id)
    repository = OrderRepository(store, clock)

    with store.transaction():
        menu = _menu_rows(store, request)
        row = repository.insert_order({
            "restaurant_id": request.restaurant_id,
            "branch_id": request.branch_id,
            "shift_id": None,
            "table_id": request.table_id,
            "order_number": repository.next_order_number(request.restaurant_id),
            "status": OrderStatus.PENDING.value,
            "source": OrderSource.QR.value,
            "order_type": OrderType.DINE_IN.value,
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
        for line in request.lines:
            menu_item: Mapping = menu[line.menu_item_id]
            repository.insert_item(
                {
                    "order_id": row["id"],
                    "restaurant_id": request.restaurant_id,
                    "menu_item_id": line.menu_item_id,
                    "name": menu_item["name"],
                    "price": round_currency(menu_item["price"]),
                    "quantity": line.quantity,
                    "notes": line.notes,
                    "voided": False,
                    "void_reason": None,
                    "kitchen_sent_at": None,
                    "created_at": clock.now_utc(),
                },
                [m.to_row() for m in line.modifiers],
            )
        repository.recompute_totals(row["id"])

    logger.info(
        f"QR order #{row['order_number']} submitted for table {request.table_id}"
    )
    return repository.load(row["id"])
