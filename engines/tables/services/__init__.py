"""
POS Tables Engine - Transfer, Split, Merge and Move
===================================================
Table management moves items between orders.

Items move by copy-then-delete: the clone (with its modifiers)
is inserted into the destination order and the original row is
deleted, its modifiers going with it. Line totals are carried by
the copied price, quantity and modifier adjustments; both orders'
totals are recomputed from their stored items.

RULES:
- Voided items never move
- A split leaves at least one live item on the original order
- Merging is only possible between open or confirmed orders;
  the older order (lower order number) absorbs the newer one
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from core.audit.models import AuditAction, EntityType
from core.audit.trail import AuditTrail
from core.commands.rejection import ReasonCode
from core.context.session import PosSession
from core.errors import (
    AccessDenied,
    PreconditionFailed,
    RecordNotFound,
    ValidationError,
    raise_rejection,
)
from core.primitives.money import ZERO
from core.store.protocol import DataStore, Row
from core.time.clock import Clock
from engines.orders.aggregate import Order, OrderItem
from engines.orders.policies import item_not_voided_policy, order_editable_policy
from engines.orders.repository import OrderRepository
from engines.orders.state_machine import (
    ABSORB,
    ACTIVE_STATUSES,
    MERGEABLE_STATUSES,
    TRANSFER_TARGET_STATUSES,
    OrderSource,
    OrderStatus,
)

logger = logging.getLogger("pos.tables")


@dataclass(frozen=True)
class TransferResult:
    source: Order
    target: Order
    item: Row


@dataclass(frozen=True)
class SplitResult:
    original: Order
    new_order: Order


@dataclass(frozen=True)
class MergeResult:
    survivor: Order
    absorbed: Order
    moved_items: int


class TableService:
    """Moves items and orders between tables and checks."""

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
        self._orders = OrderRepository(store, clock)

    # ══════════════════════════════════════════════════════════
    # TRANSFER
    # ══════════════════════════════════════════════════════════

    def transfer_item(self, item_id: str, target_order_id: str) -> TransferResult:
        with self._store.transaction():
            item_row = self._orders.require_item_row(item_id)
            source = self._editable(item_row["order_id"])
            if source["id"] == target_order_id:
                raise ValidationError(
                    "Item is already on that order.", code=ReasonCode.SAME_ORDER,
                )
            target = self._orders.require_row(
                target_order_id, self._session, for_update=True,
            )
            self._same_restaurant(source, target)
            self._accepts_items(target)
            raise_rejection(item_not_voided_policy(item_row))

            item = self._find_item(source["id"], item_id)
            moved = self._orders.copy_item_to(item, target)
            self._orders.delete_item(item_id)
            self._orders.recompute_totals(source["id"])
            self._orders.recompute_totals(target["id"])

        logger.info(
            f"Item {item_id} moved from order #{source['order_number']} "
            f"to #{target['order_number']}"
        )
        self._audit.record(
            EntityType.ORDER_ITEM, moved["id"], AuditAction.TRANSFER_ORDER_ITEM,
            {
                "item_name": item.name,
                "quantity": item.quantity,
                "from_order_id": source["id"],
                "from_order_number": source["order_number"],
                "to_order_id": target["id"],
                "to_order_number": target["order_number"],
                "original_item_id": item_id,
            },
        )
        return TransferResult(
            source=self._orders.load(source["id"]),
            target=self._orders.load(target["id"]),
            item=moved,
        )

    # ══════════════════════════════════════════════════════════
    # SPLIT
    # ══════════════════════════════════════════════════════════

    def split_order(self, order_id: str, item_ids: Iterable[str]) -> SplitResult:
        """Move the given items to a new order on the same table and shift."""
        moving = list(dict.fromkeys(item_ids))
        if not moving:
            raise ValidationError(
                "Select at least one item to split off.",
                code=ReasonCode.MISSING_FIELDS,
            )

        with self._store.transaction():
            source = self._editable(order_id)
            items = {i.id: i for i in self._orders.load_items(order_id)}

            unknown = [i for i in moving if i not in items]
            if unknown:
                raise RecordNotFound(
                    "Some items are not on this order.",
                    code=ReasonCode.ITEM_NOT_FOUND,
                    details={"item_ids": unknown},
                )
            if any(items[i].voided for i in moving):
                raise ValidationError(
                    "Voided items cannot be split off.", code=ReasonCode.ITEM_VOIDED,
                )
            staying = [
                i for i in items.values() if not i.voided and i.id not in moving
            ]
            if not staying:
                raise ValidationError(
                    "At least one item must remain on the original order.",
                    code=ReasonCode.SPLIT_WOULD_EMPTY_ORDER,
                )

            new_row = self._orders.insert_order({
                "restaurant_id": source["restaurant_id"],
                "branch_id": source.get("branch_id"),
                "shift_id": source.get("shift_id"),
                "table_id": source.get("table_id"),
                "order_number": self._orders.next_order_number(source["restaurant_id"]),
                "status": OrderStatus.OPEN.value,
                "source": OrderSource.POS.value,
                "order_type": source.get("order_type"),
                "customer_name": None,
                "notes": None,
                "subtotal": ZERO,
                "discount_type": None,
                "discount_value": None,
                "discount_amount": ZERO,
                "service_charge_rate": source.get("service_charge_rate"),
                "service_charge": ZERO,
                "tax_rate": source.get("tax_rate"),
                "tax_amount": ZERO,
                "total": ZERO,
                "change_amount": ZERO,
                "payment_round": 1,
                "cancelled_reason": None,
                "paid_at": None,
            })
            for item_id in moving:
                self._orders.copy_item_to(items[item_id], new_row)
                self._orders.delete_item(item_id)
            self._orders.recompute_totals(source["id"])
            self._orders.recompute_totals(new_row["id"])

        logger.info(
            f"Order #{source['order_number']} split: {len(moving)} item(s) "
            f"to #{new_row['order_number']}"
        )
        self._audit.record(
            EntityType.ORDER, source["id"], AuditAction.SPLIT_ORDER,
            {
                "order_number": source["order_number"],
                "new_order_id": new_row["id"],
                "new_order_number": new_row["order_number"],
                "moved_item_ids": moving,
                "remaining_items": len(staying),
            },
        )
        return SplitResult(
            original=self._orders.load(source["id"]),
            new_order=self._orders.load(new_row["id"]),
        )

    # ══════════════════════════════════════════════════════════
    # MERGE
    # ══════════════════════════════════════════════════════════

    def merge_orders(self, order_id: str, other_order_id: str) -> MergeResult:
        """
        Fold two checks into one. Voided lines stay behind on the
        absorbed order, which is cancelled.
        """
        if order_id == other_order_id:
            raise ValidationError(
                "An order cannot be merged with itself.", code=ReasonCode.SAME_ORDER,
            )

        with self._store.transaction():
            rows = [
                self._orders.require_row(i, self._session, for_update=True)
                for i in (order_id, other_order_id)
            ]
            self._same_restaurant(*rows)
            for row in rows:
                if row["status"] not in MERGEABLE_STATUSES:
                    raise PreconditionFailed(
                        f"Order #{row['order_number']} is {row['status']} "
                        f"and cannot be merged.",
                        current_status=row["status"],
                        code=ReasonCode.ORDER_NOT_OPEN,
                    )
            survivor, absorbed = sorted(rows, key=lambda r: int(r["order_number"]))

            moving = [i for i in self._orders.load_items(absorbed["id"]) if not i.voided]
            for item in moving:
                self._orders.copy_item_to(item, survivor)
                self._orders.delete_item(item.id)

            self._orders.transition(
                absorbed, ABSORB,
                patch={"cancelled_reason": f"Merged into order #{survivor['order_number']}"},
            )
            self._orders.recompute_totals(absorbed["id"])
            self._orders.recompute_totals(survivor["id"])

        logger.info(
            f"Order #{absorbed['order_number']} merged into #{survivor['order_number']}"
        )
        self._audit.record(
            EntityType.ORDER, survivor["id"], AuditAction.MERGE_ORDERS,
            {
                "order_number": survivor["order_number"],
                "absorbed_order_id": absorbed["id"],
                "absorbed_order_number": absorbed["order_number"],
                "moved_items": len(moving),
            },
        )
        return MergeResult(
            survivor=self._orders.load(survivor["id"]),
            absorbed=self._orders.load(absorbed["id"]),
            moved_items=len(moving),
        )

    # ══════════════════════════════════════════════════════════
    # MOVE
    # ══════════════════════════════════════════════════════════

    def move_to_table(self, order_id: str, table_id: str) -> Order:
        if not table_id:
            raise ValidationError(
                "A destination table is required.", code=ReasonCode.NO_TABLE_ASSIGNED,
            )
        with self._store.transaction():
            row = self._orders.require_row(order_id, self._session, for_update=True)
            if row["status"] not in ACTIVE_STATUSES:
                raise PreconditionFailed(
                    f"Order is {row['status']} and cannot change tables.",
                    current_status=row["status"],
                    code=ReasonCode.ORDER_NOT_OPEN,
                )
            if row.get("table_id") == table_id:
                raise ValidationError(
                    "Order is already at that table.", code=ReasonCode.SAME_ORDER,
                )
            self._orders.patch(order_id, {"table_id": table_id})

        self._audit.record(
            EntityType.ORDER, order_id, AuditAction.ORDER_MOVED_TABLE,
            {
                "order_number": row["order_number"],
                "from_table_id": row.get("table_id"),
                "to_table_id": table_id,
            },
        )
        return self._orders.load(order_id)

    def table_orders(self, table_id: str) -> List[Order]:
        """Active orders seated at a table, oldest first."""
        filters = {
            "restaurant_id": self._session.restaurant_id,
            "table_id": table_id,
        }
        rows = self._orders.list_rows(filters, order_by=("order_number",))
        return [Order.from_row(r) for r in rows if r["status"] in ACTIVE_STATUSES]

    # ══════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════

    def _editable(self, order_id: str) -> Row:
        row = self._orders.require_row(order_id, self._session, for_update=True)
        raise_rejection(
            order_editable_policy(row), PreconditionFailed,
            current_status=row["status"],
        )
        return row

    def _accepts_items(self, target: Row) -> None:
        if target["status"] not in TRANSFER_TARGET_STATUSES:
            raise PreconditionFailed(
                f"Items can only be moved to open or confirmed orders; "
                f"order #{target['order_number']} is {target['status']}.",
                current_status=target["status"],
                code=ReasonCode.ORDER_NOT_OPEN,
            )

    @staticmethod
    def _same_restaurant(first: Row, second: Row) -> None:
        if first["restaurant_id"] != second["restaurant_id"]:
            raise AccessDenied(
                "Orders belong to different restaurants.",
                code=ReasonCode.RESTAURANT_MISMATCH,
            )

    def _find_item(self, order_id: str, item_id: str) -> OrderItem:
        for item in self._orders.load_items(order_id):
            if item.id == item_id:
                return item
        raise RecordNotFound(
            f"Order item '{item_id}' not found.", code=ReasonCode.ITEM_NOT_FOUND,
        )


__all__ = ["MergeResult", "SplitResult", "TableService", "TransferResult"]
