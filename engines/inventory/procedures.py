"""
POS Inventory Engine - Sale Deduction Procedure
===============================================
inventory-deduct-for-order: move stock for the ingredients of a
paid order.

Steps:
1. Lock the order row; skip (success, nothing deducted) when it is
   not paid, has no branch or inventory is disabled for the branch
2. Aggregate non-voided quantities per menu item
3. Resolve active recipes and their lines
4. required[ingredient] = Σ qty_in_base × ordered quantity
5. Subtract what earlier runs for the order already took; only the
   difference is written, as SALE_DEDUCTION rows (more needed) or
   SALE_RETURN rows (lines voided after a reopen)
6. Warn about ingredients that end below zero

A second run for an unchanged order writes nothing. A reopened
order that is paid again is charged only for what changed.

Negative stock is allowed and reported, never prevented.
A failed ledger write yields a failure result; the payment that
triggered the deduction is never touched.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List

from core.audit.models import AuditAction, EntityType
from core.commands.rejection import ReasonCode
from core.errors import ValidationError
from core.feature_flags.evaluator import FeatureFlagEvaluator
from core.feature_flags.registry import FLAG_INVENTORY
from core.primitives.money import to_amount
from core.rpc.contracts import INVENTORY_DEDUCT_FOR_ORDER
from core.rpc.host import ProcedureContext
from core.store.errors import StoreError
from core.store.filters import In
from core.store.tables import (
    INVENTORY_ITEMS,
    INVENTORY_TRANSACTIONS,
    MENU_ITEM_RECIPES,
    ORDER_ITEMS,
    RECIPE_LINES,
    STOCK_LEVELS,
)
from engines.orders.repository import OrderRepository
from engines.orders.state_machine import OrderStatus

logger = logging.getLogger("pos.inventory")

SALE_DEDUCTION = "SALE_DEDUCTION"
SALE_RETURN = "SALE_RETURN"
REFERENCE_ORDER = "ORDER"

ZERO = Decimal("0")

# Audit details keep at most this many negative-stock warnings.
MAX_AUDITED_WARNINGS = 10


def _result(success=True, warnings=(), error=None, deducted_count=0) -> Dict[str, Any]:
    return {
        "success": success,
        "warnings": list(warnings),
        "error": error,
        "deducted_count": deducted_count,
    }


def taken_for_order(ctx: ProcedureContext, order_id: str) -> Dict[str, Decimal]:
    """Net base quantity already taken from stock per inventory item."""
    taken: Dict[str, Decimal] = {}
    for txn in ctx.store.select(
        INVENTORY_TRANSACTIONS,
        {
            "reference_type": REFERENCE_ORDER,
            "reference_id": order_id,
            "txn_type": In([SALE_DEDUCTION, SALE_RETURN]),
        },
        columns=["item_id", "qty_in_base"],
    ):
        key = txn["item_id"]
        taken[key] = taken.get(key, ZERO) - to_amount(txn["qty_in_base"])
    return taken


def required_ingredients(ctx: ProcedureContext, order: Dict[str, Any]) -> Dict[str, Decimal]:
    """Base quantity needed per inventory item for the order's live lines."""
    ordered: Dict[str, int] = {}
    for item in ctx.store.select(
        ORDER_ITEMS,
        {"order_id": order["id"], "voided": False},
        columns=["menu_item_id", "quantity"],
    ):
        if item.get("menu_item_id"):
            key = item["menu_item_id"]
            ordered[key] = ordered.get(key, 0) + int(item["quantity"])
    if not ordered:
        return {}

    recipes = ctx.store.select(
        MENU_ITEM_RECIPES,
        {
            "restaurant_id": order["restaurant_id"],
            "is_active": True,
            "menu_item_id": In(ordered),
        },
        columns=["id", "menu_item_id"],
    )
    if not recipes:
        return {}
    recipe_menu = {r["id"]: r["menu_item_id"] for r in recipes}

    required: Dict[str, Decimal] = {}
    for line in ctx.store.select(
        RECIPE_LINES,
        {"recipe_id": In(recipe_menu)},
        columns=["recipe_id", "inventory_item_id", "qty_in_base"],
    ):
        menu_item_id = recipe_menu.get(line["recipe_id"])
        if menu_item_id is None:
            continue
        needed = to_amount(line["qty_in_base"]) * ordered.get(menu_item_id, 0)
        key = line["inventory_item_id"]
        required[key] = required.get(key, Decimal("0")) + needed
    return required


def deduct_for_order(ctx: ProcedureContext, payload: Dict[str, Any]) -> Dict[str, Any]:
    order_id = payload.get("order_id")
    if not order_id:
        raise ValidationError("order_id is required.", code=ReasonCode.MISSING_FIELDS)

    orders = OrderRepository(ctx.store, ctx.clock)
    order = orders.require_row(order_id, ctx.session, for_update=True)

    if order["status"] != OrderStatus.PAID.value:
        logger.info(f"Order {order_id} is {order['status']}; skipping deduction")
        return _result()
    branch_id = order.get("branch_id")
    if not branch_id:
        logger.info(f"Order {order_id} has no branch; skipping deduction")
        return _result()
    if not FeatureFlagEvaluator.is_enabled(
        FLAG_INVENTORY, order["restaurant_id"], branch_id, ctx.flags,
    ):
        return _result()

    required = required_ingredients(ctx, order)
    taken = taken_for_order(ctx, order_id)
    changes = {
        item_id: required.get(item_id, ZERO) - taken.get(item_id, ZERO)
        for item_id in set(required) | set(taken)
    }
    changes = {item_id: qty for item_id, qty in changes.items() if qty != 0}
    if not changes:
        if taken:
            logger.info(f"Order {order_id} already deducted")
        return _result()

    item_ids = sorted(changes)
    stock = {
        s["item_id"]: s
        for s in ctx.store.select(
            STOCK_LEVELS,
            {"branch_id": branch_id, "item_id": In(item_ids)},
            for_update=True,
        )
    }
    items = {
        i["id"]: i
        for i in ctx.store.select(
            INVENTORY_ITEMS, {"id": In(item_ids)},
            columns=["id", "name", "base_unit_id"],
        )
    }

    warnings: List[Dict[str, Any]] = []
    deductions: List[Dict[str, Any]] = []
    for item_id in item_ids:
        current = to_amount(stock[item_id]["on_hand_base"]) if item_id in stock else ZERO
        new_on_hand = current - changes[item_id]
        deductions.append({
            "item_id": item_id,
            "required": changes[item_id],
            "new_on_hand": new_on_hand,
            "base_unit_id": items.get(item_id, {}).get("base_unit_id"),
        })
        if new_on_hand < 0:
            warnings.append({
                "inventory_item_id": item_id,
                "name": items.get(item_id, {}).get("name") or "Unknown",
                "current_on_hand": current,
                "required": changes[item_id],
                "new_on_hand": new_on_hand,
            })

    payment_round = int(order.get("payment_round") or 1)
    now = ctx.clock.now_utc()
    try:
        with ctx.store.transaction():
            ctx.store.insert(INVENTORY_TRANSACTIONS, [
                {
                    "restaurant_id": order["restaurant_id"],
                    "branch_id": branch_id,
                    "item_id": d["item_id"],
                    "qty": -d["required"],
                    "unit_id": d["base_unit_id"],
                    "qty_in_base": -d["required"],
                    "txn_type": SALE_DEDUCTION if d["required"] > 0 else SALE_RETURN,
                    "reference_type": REFERENCE_ORDER,
                    "reference_id": order_id,
                    "notes": f"Auto deduction on payment (round {payment_round})",
                    "created_by": ctx.session.user_id,
                    "created_at": now,
                }
                for d in deductions
            ])
            for d in deductions:
                if d["item_id"] in stock:
                    ctx.store.update(
                        STOCK_LEVELS,
                        {"id": stock[d["item_id"]]["id"]},
                        {"on_hand_base": d["new_on_hand"], "updated_at": now},
                    )
                else:
                    ctx.store.insert(STOCK_LEVELS, [{
                        "restaurant_id": order["restaurant_id"],
                        "branch_id": branch_id,
                        "item_id": d["item_id"],
                        "on_hand_base": d["new_on_hand"],
                        "updated_at": now,
                    }])
    except StoreError as exc:
        logger.error(f"Inventory deduction for order {order_id} failed: {exc}")
        ctx.audit.record(
            EntityType.ORDER, order_id, AuditAction.INVENTORY_DEDUCTION_FAILED,
            {"error": str(exc), "items_count": len(deductions)},
        )
        return _result(
            success=False,
            warnings=warnings,
            error="Failed to record inventory transactions",
        )

    ctx.audit.record(
        EntityType.ORDER, order_id, AuditAction.INVENTORY_SALE_DEDUCTION_DONE,
        {
            "order_id": order_id,
            "items_deducted": len(deductions),
            "total_ingredients": len(required),
            "payment_round": payment_round,
        },
    )
    if warnings:
        ctx.audit.record(
            EntityType.ORDER, order_id, AuditAction.INVENTORY_NEGATIVE_AFTER_SALE,
            {"order_id": order_id, "warnings": warnings[:MAX_AUDITED_WARNINGS]},
        )

    logger.info(
        f"Order {order_id} round {payment_round}: moved stock for "
        f"{len(deductions)} ingredients, {len(warnings)} below zero"
    )
    return _result(warnings=warnings, deducted_count=len(deductions))


INVENTORY_PROCEDURES = {
    INVENTORY_DEDUCT_FOR_ORDER: deduct_for_order,
}
