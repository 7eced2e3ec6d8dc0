"""
Tests for engines.inventory - post-payment stock deduction.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.feature_flags.registry import FLAG_INVENTORY
from core.store.errors import StoreError, StorePermissionDenied
from core.store.tables import (
    AUDIT_LOGS,
    INVENTORY_ITEMS,
    INVENTORY_TRANSACTIONS,
    MENU_ITEM_RECIPES,
    RECIPE_LINES,
    STOCK_LEVELS,
)
from engines.inventory.services import DeductionResult, InventoryDeductionHook
from engines.orders.commands import AddItemRequest, CreateOrderRequest


D = Decimal


class BrokenClient:
    def invoke(self, name, payload):
        raise TimeoutError("gateway timeout")


def _seed_burger(world, beef_on_hand="1.000", bun_on_hand="10"):
    """Burger = 0.150 kg beef + 1 bun."""
    world.store.insert(INVENTORY_ITEMS, [
        {"id": "beef", "name": "Beef", "base_unit_id": "kg"},
        {"id": "bun", "name": "Bun", "base_unit_id": "pcs"},
    ])
    world.store.insert(MENU_ITEM_RECIPES, [{
        "id": "recipe-burger", "restaurant_id": "rest-1",
        "menu_item_id": "menu-burger", "is_active": True,
    }])
    world.store.insert(RECIPE_LINES, [
        {"recipe_id": "recipe-burger", "inventory_item_id": "beef", "qty_in_base": D("0.150")},
        {"recipe_id": "recipe-burger", "inventory_item_id": "bun", "qty_in_base": D("1")},
    ])
    world.store.insert(STOCK_LEVELS, [
        {"branch_id": "branch-1", "item_id": "beef", "on_hand_base": D(beef_on_hand)},
        {"branch_id": "branch-1", "item_id": "bun", "on_hand_base": D(bun_on_hand)},
    ])


def _burger_order(world, quantity=2):
    service = world.orders()
    order = service.create_order(CreateOrderRequest(table_id="T1"))
    return service.add_item(AddItemRequest(
        order_id=order.id, name="Burger", price=D("4.500"),
        quantity=quantity, menu_item_id="menu-burger",
    ))


def _pay(world, order, with_inventory=True):
    return world.payments(with_inventory=with_inventory).complete_payment(
        order.id, [{"method": "cash", "amount": str(order.total)}],
    )


def _on_hand(world, item_id):
    return world.store.select(
        STOCK_LEVELS, {"branch_id": "branch-1", "item_id": item_id},
    )[0]["on_hand_base"]


@pytest.fixture
def shift(world):
    return world.open_shift()


class TestDeduction:
    def test_stock_moves_after_payment(self, world, shift):
        _seed_burger(world)
        order = _burger_order(world, quantity=2)
        result = _pay(world, order)

        assert result.order.status == "paid"
        assert _on_hand(world, "beef") == D("0.700")
        assert _on_hand(world, "bun") == D("8")
        txns = world.store.select(INVENTORY_TRANSACTIONS, {"reference_id": order.id})
        assert {t["txn_type"] for t in txns} == {"SALE_DEDUCTION"}
        assert sorted(t["qty_in_base"] for t in txns) == [D("-2"), D("-0.300")]
        assert "INVENTORY_SALE_DEDUCTION_DONE" in world.audit_actions(order.id)

    def test_voided_lines_not_deducted(self, world, shift):
        _seed_burger(world)
        order = _burger_order(world, quantity=1)
        order = world.orders().add_item(AddItemRequest(
            order_id=order.id, name="Burger", price=D("4.500"), menu_item_id="menu-burger",
        ))
        order = world.orders().void_item(order.items[1].id, "dropped")
        _pay(world, order)
        assert _on_hand(world, "bun") == D("9")

    def test_negative_stock_warned_not_prevented(self, world, shift):
        _seed_burger(world, beef_on_hand="0.200")
        order = _burger_order(world, quantity=2)
        result = _pay(world, order)

        assert result.order.status == "paid"
        assert _on_hand(world, "beef") == D("-0.100")
        [warning] = result.inventory_warnings
        assert warning["name"] == "Beef"
        assert warning["new_on_hand"] == D("-0.100")
        assert "INVENTORY_NEGATIVE_AFTER_SALE" in world.audit_actions(order.id)

    def test_missing_stock_row_created_negative(self, world, shift):
        _seed_burger(world)
        world.store.delete(STOCK_LEVELS, {"item_id": "bun"})
        order = _burger_order(world, quantity=1)
        result = _pay(world, order)
        assert _on_hand(world, "bun") == D("-1")
        assert len(result.inventory_warnings) == 1

    def test_idempotent_per_order(self, world, shift):
        _seed_burger(world)
        order = _burger_order(world, quantity=1)
        _pay(world, order)
        again = InventoryDeductionHook(world.rpc()).deduct_for_order(order.id)
        assert again.success
        assert again.deducted_count == 0
        assert _on_hand(world, "bun") == D("9")

    def test_items_without_recipe_skipped(self, world, shift):
        order = world.order_with_items("3.000")
        result = _pay(world, order)
        assert result.inventory_warnings == ()
        assert world.store.select(INVENTORY_TRANSACTIONS) == []

    def test_inactive_recipe_skipped(self, world, shift):
        _seed_burger(world)
        world.store.update(MENU_ITEM_RECIPES, {"id": "recipe-burger"}, {"is_active": False})
        _pay(world, _burger_order(world))
        assert _on_hand(world, "beef") == D("1.000")


class TestReopenedOrders:
    def test_repay_deducts_only_added_items(self, world, shift):
        _seed_burger(world, beef_on_hand="10.000")
        order = _burger_order(world, quantity=2)
        _pay(world, order)
        assert _on_hand(world, "beef") == D("9.700")

        world.orders().reopen_order(order.id, "guest added more")
        order = world.orders().add_item(AddItemRequest(
            order_id=order.id, name="Burger", price=D("4.500"),
            quantity=3, menu_item_id="menu-burger",
        ))
        result = _pay(world, order)

        assert result.order.status == "paid"
        assert _on_hand(world, "beef") == D("9.250")
        assert _on_hand(world, "bun") == D("5")
        beef = world.store.select(
            INVENTORY_TRANSACTIONS, {"reference_id": order.id, "item_id": "beef"},
        )
        assert sorted(t["qty_in_base"] for t in beef) == [D("-0.450"), D("-0.300")]

    def test_line_voided_after_reopen_returns_stock(self, world, shift):
        _seed_burger(world)
        order = _burger_order(world, quantity=2)
        order = world.orders().add_item(AddItemRequest(
            order_id=order.id, name="Burger", price=D("4.500"), menu_item_id="menu-burger",
        ))
        _pay(world, order)
        assert _on_hand(world, "bun") == D("7")

        world.orders().reopen_order(order.id, "wrong table")
        order = world.orders().void_item(order.items[1].id, "sent back")
        _pay(world, order)

        assert _on_hand(world, "bun") == D("8")
        assert _on_hand(world, "beef") == D("0.700")
        returns = world.store.select(
            INVENTORY_TRANSACTIONS, {"reference_id": order.id, "txn_type": "SALE_RETURN"},
        )
        assert sorted(t["qty_in_base"] for t in returns) == [D("0.150"), D("1")]

    def test_unchanged_reopened_order_writes_nothing(self, world, shift):
        _seed_burger(world)
        order = _burger_order(world, quantity=1)
        _pay(world, order)
        order = world.orders().reopen_order(order.id)
        result = _pay(world, order)

        deduction = result.side_effects.results[f"inventory:{order.id}"]
        assert deduction.success
        assert deduction.deducted_count == 0
        assert _on_hand(world, "bun") == D("9")


class TestSkips:
    def test_flag_off(self, world, shift):
        _seed_burger(world)
        world.set_flag(FLAG_INVENTORY, False, branch_id="branch-1")
        _pay(world, _burger_order(world))
        assert _on_hand(world, "beef") == D("1.000")

    def test_unpaid_order(self, world, shift):
        _seed_burger(world)
        order = _burger_order(world)
        result = InventoryDeductionHook(world.rpc()).deduct_for_order(order.id)
        assert result.success
        assert result.deducted_count == 0
        assert _on_hand(world, "beef") == D("1.000")


class TestFailures:
    def test_ledger_write_failure_leaves_payment(self, world, shift):
        _seed_burger(world)
        world.store.fail_writes(INVENTORY_TRANSACTIONS, StoreError("disk full"))
        order = _burger_order(world)
        result = _pay(world, order)

        assert result.order.status == "paid"
        assert _on_hand(world, "beef") == D("1.000")
        deduction = result.side_effects.results[f"inventory:{order.id}"]
        assert not deduction.success
        assert deduction.error == "Failed to record inventory transactions"
        assert "INVENTORY_DEDUCTION_FAILED" in world.audit_actions(order.id)

    def test_transport_failure_never_raises(self):
        result = InventoryDeductionHook(BrokenClient()).deduct_for_order("o1")
        assert result == DeductionResult(success=False, error="gateway timeout")

    def test_unknown_order_is_failure_result(self, world):
        result = InventoryDeductionHook(world.rpc()).deduct_for_order("missing")
        assert not result.success
        assert "not found" in result.error

    def test_audit_denial_trips_once_per_session(self, world, shift, monkeypatch, caplog):
        _seed_burger(world, beef_on_hand="10.000")
        orders = [_burger_order(world, quantity=1) for _ in range(2)]
        for order in orders:
            _pay(world, order, with_inventory=False)

        world.store.fail_writes(AUDIT_LOGS, StorePermissionDenied(AUDIT_LOGS, "insert"))
        attempts = []
        insert = world.store.insert

        def counting_insert(table, rows):
            if table == AUDIT_LOGS:
                attempts.append(rows)
            return insert(table, rows)

        monkeypatch.setattr(world.store, "insert", counting_insert)
        hook = InventoryDeductionHook(world.rpc())
        with caplog.at_level("WARNING", logger="pos.audit"):
            results = [hook.deduct_for_order(order.id) for order in orders]

        assert all(r.success and r.deducted_count == 2 for r in results)
        assert len(attempts) == 1
        disabled = [r for r in caplog.records if "Audit logging disabled" in r.getMessage()]
        assert len(disabled) == 1
        assert not world.host.breaker_for(world.cashier).allows_calls()
        assert _on_hand(world, "beef") == D("9.700")
