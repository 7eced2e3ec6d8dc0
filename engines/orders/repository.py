"""
POS Orders Engine - Order Repository
====================================
Reads and writes order, item and modifier rows through the
DataStore, and applies status transitions as conditional updates.

A conditional update filters on the states the transition may
start from. When another session moved the order first, the update
matches no row and the caller gets PreconditionFailed carrying the
status it lost to.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.commands.rejection import ReasonCode
from core.context.session import PosSession
from core.errors import AlreadyPaid, PreconditionFailed, RecordNotFound
from core.security.tenant_isolation import enforce_tenant_scope
from core.store.filters import In
from core.store.protocol import DataStore, Row
from core.store.tables import ORDER_ITEM_MODIFIERS, ORDER_ITEMS, ORDERS
from core.time.clock import Clock
from engines.orders.aggregate import Order, OrderItem, compute_totals
from engines.orders.state_machine import (
    ORDER_WORKFLOW,
    PAY,
    SETTLED_STATUSES,
    assert_order_transition,
)

logger = logging.getLogger("pos.orders")


class OrderRepository:
    def __init__(self, store: DataStore, clock: Clock):
        self._store = store
        self._clock = clock

    @property
    def store(self) -> DataStore:
        return self._store

    # ── orders ────────────────────────────────────────────────

    def get_row(self, order_id: str, for_update: bool = False) -> Optional[Row]:
        rows = self._store.select(ORDERS, {"id": order_id}, for_update=for_update)
        return rows[0] if rows else None

    def require_row(
        self,
        order_id: str,
        session: Optional[PosSession] = None,
        for_update: bool = False,
    ) -> Row:
        row = self.get_row(order_id, for_update=for_update)
        if row is None:
            raise RecordNotFound(
                f"Order '{order_id}' not found.", code=ReasonCode.ORDER_NOT_FOUND,
            )
        if session is not None:
            enforce_tenant_scope(session, row)
        return row

    def load(self, order_id: str, session: Optional[PosSession] = None) -> Order:
        row = self.require_row(order_id, session)
        return Order.from_row(row, self.load_items(order_id))

    def list_rows(
        self,
        filters: Mapping[str, Any],
        order_by: Iterable[str] = ("-created_at",),
        limit: Optional[int] = None,
    ) -> List[Row]:
        return self._store.select(
            ORDERS, filters, order_by=list(order_by), limit=limit,
        )

    def next_order_number(self, restaurant_id: str) -> int:
        latest = self._store.select(
            ORDERS,
            {"restaurant_id": restaurant_id},
            columns=["order_number"],
            order_by=["-order_number"],
            limit=1,
            for_update=True,
        )
        if not latest or latest[0].get("order_number") is None:
            return 1
        return int(latest[0]["order_number"]) + 1

    def insert_order(self, row: Mapping[str, Any]) -> Row:
        now = self._clock.now_utc()
        values = dict(row)
        values.setdefault("created_at", now)
        values.setdefault("updated_at", now)
        return self._store.insert(ORDERS, [values])[0]

    def patch(self, order_id: str, values: Mapping[str, Any]) -> Row:
        patch = dict(values)
        patch["updated_at"] = self._clock.now_utc()
        updated = self._store.update(ORDERS, {"id": order_id}, patch)
        if not updated:
            raise RecordNotFound(
                f"Order '{order_id}' not found.", code=ReasonCode.ORDER_NOT_FOUND,
            )
        return updated[0]

    def transition(
        self,
        order_row: Mapping[str, Any],
        action: str,
        patch: Optional[Mapping[str, Any]] = None,
        extra_filters: Optional[Mapping[str, Any]] = None,
    ) -> Row:
        """
        Apply `action` to the order: validate against the workflow, then
        update only if the row is still in an allowed source state.
        """
        target = assert_order_transition(action, order_row["status"])
        filters: Dict[str, Any] = {
            "id": order_row["id"],
            "status": In(ORDER_WORKFLOW.source_states(action)),
        }
        filters.update(extra_filters or {})
        values = dict(patch or {})
        values["status"] = target
        values["updated_at"] = self._clock.now_utc()

        updated = self._store.update(ORDERS, filters, values)
        if updated:
            logger.info(
                f"Order {order_row['id']} {order_row['status']} → {target} ({action})"
            )
            return updated[0]

        fresh = self.get_row(order_row["id"])
        current = fresh["status"] if fresh else None
        if action == PAY and current in SETTLED_STATUSES:
            raise AlreadyPaid(
                "Order was completed by another session.",
                current_status=current,
                code=ReasonCode.ALREADY_PAID,
            )
        raise PreconditionFailed(
            "Order changed while the request was in flight. Refresh and retry.",
            current_status=current,
            code=ReasonCode.RACE_CONDITION,
        )

    def recompute_totals(self, order_id: str) -> Row:
        row = self.require_row(order_id)
        totals = compute_totals(
            self.load_items(order_id),
            tax_rate=row.get("tax_rate") or 0,
            service_charge_rate=row.get("service_charge_rate") or 0,
            discount_type=row.get("discount_type"),
            discount_value=row.get("discount_value"),
        )
        return self.patch(order_id, totals.as_patch())

    # ── items ─────────────────────────────────────────────────

    def item_rows(self, order_id: str) -> List[Row]:
        return self._store.select(
            ORDER_ITEMS, {"order_id": order_id}, order_by=["created_at"],
        )

    def modifier_rows(self, item_ids: Iterable[str]) -> Dict[str, List[Row]]:
        ids = list(item_ids)
        grouped: Dict[str, List[Row]] = {item_id: [] for item_id in ids}
        if not ids:
            return grouped
        for row in self._store.select(
            ORDER_ITEM_MODIFIERS, {"order_item_id": In(ids)},
        ):
            grouped.setdefault(row["order_item_id"], []).append(row)
        return grouped

    def load_items(self, order_id: str) -> Tuple[OrderItem, ...]:
        rows = self.item_rows(order_id)
        modifiers = self.modifier_rows(r["id"] for r in rows)
        return tuple(
            OrderItem.from_row(r, modifiers.get(r["id"], ())) for r in rows
        )

    def get_item_row(self, item_id: str) -> Optional[Row]:
        rows = self._store.select(ORDER_ITEMS, {"id": item_id})
        return rows[0] if rows else None

    def require_item_row(self, item_id: str) -> Row:
        row = self.get_item_row(item_id)
        if row is None:
            raise RecordNotFound(
                f"Order item '{item_id}' not found.", code=ReasonCode.ITEM_NOT_FOUND,
            )
        return row

    def insert_item(
        self,
        values: Mapping[str, Any],
        modifiers: Iterable[Mapping[str, Any]] = (),
    ) -> Row:
        item = self._store.insert(ORDER_ITEMS, [dict(values)])[0]
        modifier_rows = [
            dict(m, order_item_id=item["id"]) for m in modifiers
        ]
        if modifier_rows:
            self._store.insert(ORDER_ITEM_MODIFIERS, modifier_rows)
        return item

    def patch_item(self, item_id: str, values: Mapping[str, Any]) -> Row:
        updated = self._store.update(ORDER_ITEMS, {"id": item_id}, dict(values))
        if not updated:
            raise RecordNotFound(
                f"Order item '{item_id}' not found.", code=ReasonCode.ITEM_NOT_FOUND,
            )
        return updated[0]

    def delete_item(self, item_id: str) -> None:
        self._store.delete(ORDER_ITEMS, {"id": item_id})

    def copy_item_to(self, item: OrderItem, target_order: Mapping[str, Any]) -> Row:
        """Clone an item and its modifiers into another order."""
        return self.insert_item(
            {
                "order_id": target_order["id"],
                "restaurant_id": target_order["restaurant_id"],
                "menu_item_id": item.menu_item_id,
                "name": item.name,
                "price": item.price,
                "quantity": item.quantity,
                "notes": item.notes,
                "voided": False,
                "void_reason": None,
                "kitchen_sent_at": item.kitchen_sent_at,
                "created_at": self._clock.now_utc(),
            },
            [
                {
                    "modifier_option_id": m.modifier_option_id,
                    "modifier_name": m.modifier_name,
                    "option_name": m.option_name,
                    "price_adjustment": m.price_adjustment,
                }
                for m in item.modifiers
            ],
        )
