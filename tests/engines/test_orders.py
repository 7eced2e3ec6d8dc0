"""
Tests for engines.orders - order entry, totals and lifecycle.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.commands.rejection import ReasonCode
from core.context.session import ROLE_CASHIER, PosSession
from core.errors import AccessDenied, PreconditionFailed, ValidationError
from core.feature_flags.registry import FLAG_KDS
from engines.orders.aggregate import Order, OrderItem, OrderItemModifier, compute_totals
from engines.orders.commands import (
    AddItemRequest,
    ApplyDiscountRequest,
    CreateOrderRequest,
    ModifierSelection,
)


D = Decimal


@pytest.fixture
def shift(world):
    return world.open_shift()


def _item(price, quantity=1, voided=False, modifiers=()):
    return OrderItem(
        id="i", order_id="o", restaurant_id="r", menu_item_id=None,
        name="x", price=D(price), quantity=quantity, voided=voided,
        modifiers=tuple(
            OrderItemModifier(
                id="m", order_item_id="i", modifier_option_id=None,
                modifier_name="Size", option_name="L", price_adjustment=D(adj),
            )
            for adj in modifiers
        ),
    )


# ── Totals ───────────────────────────────────────────────────

class TestComputeTotals:
    def test_plain_subtotal(self):
        totals = compute_totals([_item("10.500")])
        assert totals.subtotal == D("10.500")
        assert totals.total == D("10.500")

    def test_voided_items_excluded(self):
        totals = compute_totals([_item("5"), _item("7", voided=True)])
        assert totals.subtotal == D("5.000")

    def test_modifiers_add_to_unit_price(self):
        totals = compute_totals([_item("3.000", quantity=2, modifiers=["0.500", "0.250"])])
        assert totals.subtotal == D("7.500")

    def test_service_then_tax(self):
        totals = compute_totals(
            [_item("10"), _item("10")], tax_rate="0.16", service_charge_rate="0.10",
        )
        assert totals.service_charge == D("2.000")
        assert totals.tax_amount == D("3.520")
        assert totals.total == D("25.520")

    def test_percent_discount(self):
        totals = compute_totals(
            [_item("20")], tax_rate="0.16", service_charge_rate="0.10",
            discount_type="percent", discount_value="10",
        )
        assert totals.discount_amount == D("2.000")
        assert totals.service_charge == D("1.800")
        assert totals.tax_amount == D("3.168")
        assert totals.total == D("22.968")

    def test_fixed_discount_capped_at_subtotal(self):
        totals = compute_totals([_item("4")], discount_type="fixed", discount_value="10")
        assert totals.discount_amount == D("4.000")
        assert totals.total == D("0.000")

    def test_total_is_sum_of_rounded_parts(self):
        totals = compute_totals(
            [_item("1.111", quantity=3)], tax_rate="0.16", service_charge_rate="0.07",
            discount_type="percent", discount_value="3.3",
        )
        assert totals.total == (
            totals.subtotal - totals.discount_amount
            + totals.service_charge + totals.tax_amount
        )

    def test_order_reads_wire_strings(self):
        order = Order.from_row({
            "id": "o", "restaurant_id": "r", "order_number": "7", "status": "paid",
            "total": "10.500", "paid_at": "2026-03-01T09:00:00+00:00",
        })
        assert order.total == D("10.500")
        assert order.order_number == 7
        assert order.paid_at.year == 2026


# ── Requests ─────────────────────────────────────────────────

class TestRequests:
    def test_negative_price(self):
        with pytest.raises(ValidationError, match="price"):
            AddItemRequest(order_id="o", name="Tea", price=D("-1"))

    def test_zero_quantity(self):
        with pytest.raises(ValidationError, match="quantity"):
            AddItemRequest(order_id="o", name="Tea", price=D("1"), quantity=0)

    def test_price_rounded(self):
        assert AddItemRequest(order_id="o", name="Tea", price="1.2345").price == D("1.235")

    def test_percent_discount_over_100(self):
        with pytest.raises(ValidationError) as exc_info:
            ApplyDiscountRequest(order_id="o", discount_type="percent", discount_value=D("150"))
        assert exc_info.value.code == ReasonCode.INVALID_DISCOUNT

    def test_unknown_order_type(self):
        with pytest.raises(ValidationError, match="order_type"):
            CreateOrderRequest(order_type="drive_thru")


# ── Order entry ──────────────────────────────────────────────

class TestCreateOrder:
    def test_needs_open_shift(self, world):
        with pytest.raises(PreconditionFailed) as exc_info:
            world.orders().create_order(CreateOrderRequest(table_id="T1"))
        assert exc_info.value.code == ReasonCode.NO_OPEN_SHIFT

    def test_created_on_shift_and_branch(self, world, shift):
        order = world.orders().create_order(CreateOrderRequest(table_id="T1"))
        assert order.status == "open"
        assert order.shift_id == shift["id"]
        assert order.branch_id == "branch-1"
        assert order.source == "pos"
        assert "ORDER_CREATE" in world.audit_actions(order.id)

    def test_order_numbers_increase(self, world, shift):
        service = world.orders()
        first = service.create_order(CreateOrderRequest(table_id="T1"))
        second = service.create_order(CreateOrderRequest(order_type="takeaway"))
        assert second.order_number == first.order_number + 1

    def test_rates_snapshotted(self, taxed_world):
        taxed_world.open_shift()
        order = taxed_world.orders().create_order(CreateOrderRequest(table_id="T1"))
        assert order.tax_rate == D("0.16")
        assert order.service_charge_rate == D("0.10")


class TestLineItems:
    def test_totals_recomputed_after_add(self, taxed_world):
        taxed_world.open_shift()
        order = taxed_world.order_with_items("10", "10")
        assert order.subtotal == D("20.000")
        assert order.total == D("25.520")
        assert len(order.items) == 2

    def test_modifiers_stored(self, world, shift):
        service = world.orders()
        order = service.create_order(CreateOrderRequest(table_id="T1"))
        order = service.add_item(AddItemRequest(
            order_id=order.id, name="Coffee", price=D("2.000"), quantity=2,
            modifiers=(ModifierSelection(modifier_name="Size", option_name="Large",
                                         price_adjustment=D("0.500")),),
        ))
        assert order.items[0].modifiers[0].option_name == "Large"
        assert order.total == D("5.000")

    def test_quantity_change_and_remove(self, world, shift):
        order = world.order_with_items("3", "4")
        service = world.orders()
        order = service.update_item_quantity(order.items[0].id, 3)
        assert order.total == D("13.000")
        order = service.remove_item(order.items[0].id)
        assert len(order.items) == 1
        assert order.total == D("4.000")
        assert "ITEM_QTY_CHANGED" in world.audit_actions()

    def test_void_item_keeps_line_and_drops_total(self, world, shift):
        order = world.order_with_items("3", "4")
        order = world.orders().void_item(order.items[1].id, "customer changed mind")
        assert len(order.items) == 2
        assert order.items[1].voided
        assert order.items[1].void_reason == "customer changed mind"
        assert order.total == D("3.000")

    def test_void_item_needs_reason(self, world, shift):
        order = world.order_with_items("3")
        with pytest.raises(ValidationError, match="reason"):
            world.orders().void_item(order.items[0].id, "  ")

    def test_voided_item_cannot_change(self, world, shift):
        order = world.order_with_items("3", "4")
        world.orders().void_item(order.items[0].id, "wrong")
        with pytest.raises(PreconditionFailed) as exc_info:
            world.orders().update_item_quantity(order.items[0].id, 5)
        assert exc_info.value.code == ReasonCode.ITEM_VOIDED

    def test_held_order_not_editable(self, world, shift):
        order = world.order_with_items("3")
        world.orders().hold_order(order.id)
        with pytest.raises(PreconditionFailed) as exc_info:
            world.orders().add_item(AddItemRequest(order_id=order.id, name="Tea", price=D("1")))
        assert exc_info.value.code == ReasonCode.ORDER_NOT_EDITABLE

    def test_discount_applied_and_cleared(self, world, shift):
        order = world.order_with_items("20")
        order = world.orders().apply_discount(
            ApplyDiscountRequest(order_id=order.id, discount_type="fixed", discount_value=D("5")),
        )
        assert order.discount_amount == D("5.000")
        assert order.total == D("15.000")
        order = world.orders().clear_discount(order.id)
        assert order.total == D("20.000")
        assert "DISCOUNT_APPLY" in world.audit_actions(order.id)

    def test_notes(self, world, shift):
        order = world.order_with_items("1")
        order = world.orders().set_item_notes(order.items[0].id, "  no sugar ")
        assert order.items[0].notes == "no sugar"
        order = world.orders().set_order_notes(order.id, "")
        assert order.notes is None


# ── Lifecycle ────────────────────────────────────────────────

class TestLifecycle:
    def test_hold_and_resume(self, world, shift):
        order = world.order_with_items("3")
        assert world.orders().hold_order(order.id).status == "held"
        assert world.orders().resume_order(order.id).status == "open"
        assert world.audit_actions(order.id)[-2:] == ["ORDER_HOLD", "ORDER_RESUME"]

    def test_hold_twice_rejected(self, world, shift):
        order = world.order_with_items("3")
        world.orders().hold_order(order.id)
        with pytest.raises(PreconditionFailed) as exc_info:
            world.orders().hold_order(order.id)
        assert exc_info.value.code == ReasonCode.INVALID_TRANSITION

    def test_cancel_needs_reason(self, world, shift):
        order = world.order_with_items("3")
        with pytest.raises(ValidationError):
            world.orders().cancel_order(order.id, "")
        cancelled = world.orders().cancel_order(order.id, "walked out")
        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_reason == "walked out"

    def test_void_open_order(self, world, shift):
        order = world.order_with_items("3")
        voided = world.orders().void_order(order.id, "test order")
        assert voided.status == "voided"
        assert "ORDER_VOIDED" in world.audit_actions(order.id)

    def test_void_paid_order_rejected(self, world, shift):
        order = world.order_with_items("10.500")
        world.payments().complete_payment(order.id, [{"method": "cash", "amount": "10.500"}])
        with pytest.raises(PreconditionFailed) as exc_info:
            world.orders().void_order(order.id, "mistake")
        assert exc_info.value.current_status == "paid"
        assert world.orders().get_order(order.id).status == "paid"

    def test_cancelled_order_cannot_resume(self, world, shift):
        order = world.order_with_items("3")
        world.orders().cancel_order(order.id, "gone")
        with pytest.raises(PreconditionFailed, match="terminal"):
            world.orders().resume_order(order.id)


class TestReopen:
    def test_reopen_paid_order(self, world, shift):
        order = world.order_with_items("10")
        world.payments().complete_payment(order.id, [{"method": "cash", "amount": "20"}])
        reopened = world.orders().reopen_order(order.id, "add dessert")
        assert reopened.status == "open"
        assert reopened.payment_round == 2
        assert reopened.change_amount == D("0.000")
        assert reopened.paid_at is None
        assert "ORDER_REOPEN" in world.audit_actions(order.id)

    def test_superseded_payments_kept(self, world, shift):
        order = world.order_with_items("10")
        payments = world.payments()
        payments.complete_payment(order.id, [{"method": "cash", "amount": "10"}])
        world.orders().reopen_order(order.id)
        assert payments.list_payments(order.id) == []
        assert len(payments.list_payments(order.id, current_round_only=False)) == 1

    def test_open_order_cannot_reopen(self, world, shift):
        order = world.order_with_items("10")
        with pytest.raises(PreconditionFailed):
            world.orders().reopen_order(order.id)

    def test_refunded_order_cannot_reopen(self, world, shift):
        order = world.order_with_items("10")
        world.payments().complete_payment(order.id, [{"method": "cash", "amount": "10"}])
        world.payments().create_refund(order.id, "cold food", amount="2")
        with pytest.raises(PreconditionFailed, match="refunds"):
            world.orders().reopen_order(order.id)


class TestSendToKitchen:
    def test_confirmed_without_kds(self, world, shift):
        order = world.order_with_items("3", "4")
        sent = world.orders().send_to_kitchen(order.id)
        assert sent.status == "confirmed"
        assert all(i.kitchen_sent_at is not None for i in sent.items)
        assert "SEND_TO_KITCHEN" in world.audit_actions(order.id)

    def test_new_with_kds(self, world, shift):
        world.set_flag(FLAG_KDS, True, branch_id="branch-1")
        order = world.order_with_items("3")
        assert world.orders().send_to_kitchen(order.id).status == "new"

    def test_takeaway_rejected(self, world, shift):
        order = world.order_with_items("3", table_id=None)
        with pytest.raises(ValidationError) as exc_info:
            world.orders().send_to_kitchen(order.id)
        assert exc_info.value.code == ReasonCode.DINE_IN_ONLY

    def test_nothing_new_to_send(self, world, shift):
        order = world.order_with_items("3")
        world.orders().send_to_kitchen(order.id)
        with pytest.raises(ValidationError, match="no new items"):
            world.orders().send_to_kitchen(order.id)

    def test_later_items_sent_without_status_change(self, world, shift):
        order = world.order_with_items("3")
        service = world.orders()
        service.send_to_kitchen(order.id)
        world.clock.advance(60)
        service.add_item(AddItemRequest(order_id=order.id, name="Juice", price=D("2")))
        sent = service.send_to_kitchen(order.id)
        assert sent.status == "confirmed"
        assert sent.items[1].kitchen_sent_at == world.clock.now_utc()


# ── Queries and tenancy ──────────────────────────────────────

class TestQueries:
    def test_open_orders_exclude_settled(self, world, shift):
        kept = world.order_with_items("3")
        paid = world.order_with_items("4")
        world.payments().complete_payment(paid.id, [{"method": "cash", "amount": "4"}])
        assert [o.id for o in world.orders().list_open_orders()] == [kept.id]

    def test_held_orders(self, world, shift):
        order = world.order_with_items("3")
        world.orders().hold_order(order.id)
        assert [o.id for o in world.orders().list_held_orders(shift["id"])] == [order.id]

    def test_shift_orders_newest_first(self, world, shift):
        first = world.order_with_items("3")
        world.clock.advance(60)
        second = world.order_with_items("4")
        world.payments().complete_payment(second.id, [{"method": "cash", "amount": "4"}])
        orders = world.orders().list_shift_orders(shift["id"])
        assert [o.id for o in orders] == [second.id, first.id]
        assert [o.id for o in world.orders().list_shift_orders(shift["id"], limit=1)] == [second.id]
        assert world.orders().list_shift_orders("other-shift") == []

    def test_other_restaurant_denied(self, world, shift):
        order = world.order_with_items("3")
        intruder = PosSession(
            user_id="c9", role=ROLE_CASHIER, restaurant_id="rest-2", branch_id="b9",
        )
        with pytest.raises(AccessDenied):
            world.orders(intruder).get_order(order.id)

    def test_other_branch_denied(self, world, shift):
        order = world.order_with_items("3")
        neighbour = PosSession(
            user_id="c2", role=ROLE_CASHIER, restaurant_id="rest-1", branch_id="branch-2",
        )
        with pytest.raises(AccessDenied) as exc_info:
            world.orders(neighbour).hold_order(order.id)
        assert exc_info.value.code == ReasonCode.BRANCH_MISMATCH
