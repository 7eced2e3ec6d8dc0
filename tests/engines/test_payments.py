"""
Tests for engines.payments - exactness rules, atomic completion,
table checkout and refunds.
"""

from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from core.commands.rejection import ReasonCode
from core.errors import (
    AlreadyPaid,
    MoneyMismatch,
    PreconditionFailed,
    ValidationError,
)
from core.feature_flags.registry import payment_method_flag
from core.rpc.calls import call_procedure
from core.rpc.contracts import COMPLETE_PAYMENT
from core.store.tables import ORDERS, PAYMENTS
from engines.orders.commands import AddItemRequest
from engines.payments.methods import PaymentMethod
from engines.payments.validation import PaymentLine, allocate_payments, assess_payment


D = Decimal


def cash(amount):
    return {"method": "cash", "amount": amount}


def visa(amount):
    return {"method": "visa", "amount": amount}


def lines(*payments):
    return [PaymentLine.parse(p) for p in payments]


@pytest.fixture
def shift(world):
    return world.open_shift()


# ── Exactness rules ──────────────────────────────────────────

class TestAssessPayment:
    def test_exact_cash(self):
        result = assess_payment(D("10.500"), lines(cash("10.500")))
        assert result.change == D("0.000")
        assert result.all_cash

    def test_card_short(self):
        with pytest.raises(MoneyMismatch) as exc_info:
            assess_payment(D("10.500"), lines(visa("10.000")))
        assert exc_info.value.code == ReasonCode.UNDERPAYMENT
        assert exc_info.value.shortfall == D("0.500")

    def test_card_overpay(self):
        with pytest.raises(MoneyMismatch) as exc_info:
            assess_payment(D("10.500"), lines(visa("11.000")))
        assert exc_info.value.code == ReasonCode.CARD_OVERPAYMENT
        assert exc_info.value.excess == D("0.500")

    def test_cash_overpay_gives_change(self):
        assert assess_payment(D("10.500"), lines(cash("15.000"))).change == D("4.500")

    def test_mixed_exact(self):
        result = assess_payment(D("10.500"), lines(cash("5.000"), visa("5.500")))
        assert result.change == D("0.000")
        assert not result.all_cash

    def test_mixed_overpay_rejected(self):
        with pytest.raises(MoneyMismatch) as exc_info:
            assess_payment(D("10.500"), lines(cash("6.000"), visa("5.500")))
        assert exc_info.value.code == ReasonCode.CARD_OVERPAYMENT

    def test_cash_short_rejected(self):
        with pytest.raises(MoneyMismatch):
            assess_payment(D("10.500"), lines(cash("10.000")))

    def test_within_epsilon_accepted(self):
        assert assess_payment(D("10.500"), lines(visa("10.4995"))).change == D("0.000")

    def test_float_amounts_compared_as_decimals(self):
        result = assess_payment(D("0.300"), lines(
            {"method": "visa", "amount": 0.1}, {"method": "visa", "amount": 0.2},
        ))
        assert result.payment_total == D("0.300")


class TestPaymentLine:
    def test_unknown_method(self):
        with pytest.raises(ValidationError) as exc_info:
            PaymentLine.parse({"method": "bitcoin", "amount": "1"})
        assert exc_info.value.code == ReasonCode.INVALID_PAYMENT_METHOD

    def test_zero_amount(self):
        with pytest.raises(ValidationError, match="greater than zero"):
            PaymentLine.parse(cash("0"))

    def test_missing_amount(self):
        with pytest.raises(ValidationError) as exc_info:
            PaymentLine.parse({"method": "cash"})
        assert exc_info.value.code == ReasonCode.MISSING_FIELDS

    def test_method_is_enum(self):
        assert PaymentLine.parse(visa("1")).method is PaymentMethod.VISA


class TestAllocatePayments:
    def test_shares_add_up_to_each_payment(self):
        allocation = allocate_payments(
            [D("3.333"), D("6.667")], lines(cash("7.000"), visa("3.000")),
        )
        for method in ("cash", "visa"):
            total = sum(
                (p.amount for share in allocation for p in share if p.method.value == method),
                D("0"),
            )
            assert total == {"cash": D("7.000"), "visa": D("3.000")}[method]

    def test_remainder_on_last_order(self):
        allocation = allocate_payments([D("1"), D("1"), D("1")], lines(visa("3.000")))
        assert [share[0].amount for share in allocation] == [
            D("1.000"), D("1.000"), D("1.000"),
        ]

    def test_each_order_gets_its_exact_total(self):
        allocation = allocate_payments(
            [D("4.000"), D("6.000")], lines(visa("5.000"), cash("15.000")),
        )
        assert [(p.method.value, p.amount) for p in allocation[0]] == [("visa", D("4.000"))]
        assert [(p.method.value, p.amount) for p in allocation[1]] == [
            ("visa", D("1.000")), ("cash", D("15.000")),
        ]

    def test_cash_surplus_on_last_order(self):
        allocation = allocate_payments([D("1"), D("1"), D("1")], lines(cash("10.000")))
        assert [share[0].amount for share in allocation] == [
            D("1"), D("1"), D("8.000"),
        ]


# ── complete-payment ─────────────────────────────────────────

class TestCompletePayment:
    def test_exact_cash(self, world, shift):
        order = world.order_with_items("10.500")
        result = world.payments().complete_payment(order.id, [cash("10.500")])
        assert result.order.status == "paid"
        assert result.change == D("0.000")
        assert result.order.paid_at is not None
        assert len(result.payments) == 1

    def test_cash_change_recorded_on_order(self, world, shift):
        order = world.order_with_items("10.500")
        result = world.payments().complete_payment(order.id, [cash("15.000")])
        assert result.change == D("4.500")
        stored = world.store.select(ORDERS, {"id": order.id})[0]
        assert stored["change_amount"] == D("4.500")

    def test_mixed_payment_rows(self, world, shift):
        order = world.order_with_items("10.500")
        result = world.payments().complete_payment(
            order.id, [cash("5.000"), visa("5.500")],
        )
        rows = world.store.select(PAYMENTS, {"order_id": order.id})
        assert sorted(r["method"] for r in rows) == ["cash", "visa"]
        assert result.payment_total == D("10.500")
        assert all(r["shift_id"] == shift["id"] for r in rows)

    def test_card_underpay_leaves_order_open(self, world, shift):
        order = world.order_with_items("10.500")
        with pytest.raises(MoneyMismatch):
            world.payments().complete_payment(order.id, [visa("10.000")])
        assert world.orders().get_order(order.id).status == "open"
        assert world.store.select(PAYMENTS) == []

    def test_card_overpay_rejected(self, world, shift):
        order = world.order_with_items("10.500")
        with pytest.raises(MoneyMismatch):
            world.payments().complete_payment(order.id, [visa("11.000")])

    def test_empty_payments(self, world, shift):
        order = world.order_with_items("10.500")
        with pytest.raises(ValidationError, match="At least one payment"):
            world.payments().complete_payment(order.id, [])

    def test_already_paid(self, world, shift):
        order = world.order_with_items("10.500")
        world.payments().complete_payment(order.id, [cash("10.500")])
        with pytest.raises(AlreadyPaid):
            world.payments().complete_payment(order.id, [cash("10.500")])

    def test_held_order_not_payable(self, world, shift):
        order = world.order_with_items("10.500")
        world.orders().hold_order(order.id)
        with pytest.raises(PreconditionFailed) as exc_info:
            world.payments().complete_payment(order.id, [cash("10.500")])
        assert exc_info.value.current_status == "held"

    def test_total_recomputed_server_side(self, world, shift):
        order = world.order_with_items("10.500")
        world.store.update(ORDERS, {"id": order.id}, {"total": D("1.000")})
        with pytest.raises(MoneyMismatch):
            call_procedure(
                world.rpc(), COMPLETE_PAYMENT,
                {"order_id": order.id, "payments": [visa("1.000")]},
            )

    def test_taxed_total(self, taxed_world):
        taxed_world.open_shift()
        order = taxed_world.order_with_items("10", "10")
        result = taxed_world.payments().complete_payment(order.id, [visa("25.520")])
        assert result.order_total == D("25.520")

    def test_audit_recorded_after_commit(self, world, shift):
        order = world.order_with_items("10.500")
        result = world.payments().complete_payment(order.id, [cash("10.500")])
        assert "ORDER_COMPLETE" in world.audit_actions(order.id)
        assert "audit" in result.side_effects.results

    def test_confirmed_order_payable(self, world, shift):
        order = world.order_with_items("10.500")
        world.orders().send_to_kitchen(order.id)
        result = world.payments().complete_payment(order.id, [cash("10.500")])
        assert result.order.status == "paid"


class TestConcurrentCompletion:
    def test_exactly_one_session_wins(self, world, shift):
        order = world.order_with_items("10.500")
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt():
            service = world.payments(with_inventory=False)
            barrier.wait()
            try:
                service.complete_payment(order.id, [cash("10.500")])
                outcomes.append("paid")
            except PreconditionFailed as exc:
                outcomes.append(type(exc).__name__)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["AlreadyPaid", "paid"]
        assert len(world.store.select(PAYMENTS, {"order_id": order.id})) == 1


class TestPaymentMethods:
    def test_defaults(self, world):
        assert world.payments().enabled_methods() == ["cash", "visa"]

    def test_branch_enables_wallet(self, world):
        world.set_flag(payment_method_flag("cliq"), True, branch_id="branch-1")
        assert world.payments().enabled_methods() == ["cash", "visa", "cliq"]

    def test_disabled_method_rejected(self, world, shift):
        order = world.order_with_items("10.500")
        with pytest.raises(ValidationError) as exc_info:
            world.payments().complete_payment(
                order.id, [{"method": "zain_cash", "amount": "10.500"}],
            )
        assert exc_info.value.code == ReasonCode.PAYMENT_METHOD_DISABLED
        assert exc_info.value.details["disabled_methods"] == ["zain_cash"]

    def test_disabled_method_rejected_by_procedure(self, world, shift):
        order = world.order_with_items("10.500")
        world.set_flag(payment_method_flag("visa"), False)
        with pytest.raises(ValidationError) as exc_info:
            call_procedure(
                world.rpc(), COMPLETE_PAYMENT,
                {"order_id": order.id, "payments": [visa("10.500")]},
            )
        assert exc_info.value.code == ReasonCode.PAYMENT_METHOD_DISABLED

    def test_precheck_writes_nothing(self, world, shift):
        order = world.order_with_items("10.500")
        assessment = world.payments().precheck(order.id, [cash("20")])
        assert assessment.change == D("9.500")
        assert world.orders().get_order(order.id).status == "open"


# ── complete-table-payment ───────────────────────────────────

class TestTablePayment:
    def test_settles_every_order(self, world, shift):
        first = world.order_with_items("4.000")
        second = world.order_with_items("6.000")
        result = world.payments().complete_table_payment(
            [first.id, second.id], [cash("5.000"), visa("5.000")],
        )
        assert [o.status for o in result.orders] == ["paid", "paid"]
        assert result.combined_total == D("10.000")
        rows = world.store.select(PAYMENTS)
        assert sum((r["amount"] for r in rows), D("0")) == D("10.000")
        assert "TABLE_CHECKOUT" in world.audit_actions(second.id)

    def test_change_on_last_order(self, world, shift):
        first = world.order_with_items("4.000")
        second = world.order_with_items("6.000")
        result = world.payments().complete_table_payment(
            [second.id, first.id], [cash("20.000")],
        )
        assert result.change == D("10.000")
        by_id = {o.id: o for o in result.orders}
        assert by_id[first.id].change_amount == D("0.000")
        assert by_id[second.id].change_amount == D("10.000")
        paid_in = {
            order_id: sum(
                (r["amount"] for r in world.store.select(PAYMENTS, {"order_id": order_id})),
                D("0"),
            )
            for order_id in (first.id, second.id)
        }
        assert paid_in == {first.id: D("4.000"), second.id: D("16.000")}

    def test_one_settled_order_fails_all(self, world, shift):
        first = world.order_with_items("4.000")
        second = world.order_with_items("6.000")
        world.payments().complete_payment(first.id, [cash("4.000")])
        with pytest.raises(AlreadyPaid):
            world.payments().complete_table_payment(
                [first.id, second.id], [cash("10.000")],
            )
        assert world.orders().get_order(second.id).status == "open"

    def test_underpaid_table(self, world, shift):
        first = world.order_with_items("4.000")
        second = world.order_with_items("6.000")
        with pytest.raises(MoneyMismatch):
            world.payments().complete_table_payment(
                [first.id, second.id], [visa("9.000")],
            )

    def test_duplicate_ids_rejected(self, world, shift):
        order = world.order_with_items("4.000")
        with pytest.raises(ValidationError, match="repeat"):
            world.payments().complete_table_payment([order.id, order.id], [cash("8")])

    def test_method_disabled_on_one_branch_rejected_locally(self, world, shift, monkeypatch):
        first = world.order_with_items("4.000")
        second = world.order_with_items("6.000")
        world.store.update(ORDERS, {"id": second.id}, {"branch_id": "branch-2"})
        world.set_flag(payment_method_flag("visa"), False, branch_id="branch-2")
        calls = []
        monkeypatch.setattr(world.host, "execute", lambda *args: calls.append(args))

        with pytest.raises(ValidationError) as exc_info:
            world.payments().complete_table_payment(
                [first.id, second.id], [visa("10.000")],
            )
        assert exc_info.value.code == ReasonCode.PAYMENT_METHOD_DISABLED
        assert exc_info.value.details["disabled_methods"] == ["visa"]
        assert calls == []

    def test_cancelled_order_rejected_locally(self, world, shift, monkeypatch):
        first = world.order_with_items("4.000")
        second = world.order_with_items("6.000")
        world.orders().cancel_order(second.id, "guest left")
        calls = []
        monkeypatch.setattr(world.host, "execute", lambda *args: calls.append(args))

        with pytest.raises(PreconditionFailed):
            world.payments().complete_table_payment(
                [first.id, second.id], [cash("10.000")],
            )
        assert calls == []
        assert world.orders().get_order(first.id).status == "open"


# ── create-refund ────────────────────────────────────────────

class TestRefunds:
    @pytest.fixture
    def paid(self, world, shift):
        order = world.order_with_items("10.000")
        world.payments().complete_payment(order.id, [cash("10.000")])
        return order

    def test_partial_refund(self, world, paid):
        result = world.payments().create_refund(paid.id, "cold soup", amount="3.000")
        assert result.total_refunded == D("3.000")
        assert result.remaining_refundable == D("7.000")
        assert not result.is_fully_refunded
        assert result.order.status == "paid"
        assert "REFUND_CREATE" in world.audit_actions()

    def test_refunds_reaching_total_mark_refunded(self, world, paid):
        payments = world.payments()
        payments.create_refund(paid.id, "cold soup", amount="3.000")
        result = payments.create_refund(paid.id, "rest of the meal", amount="7.000")
        assert result.is_fully_refunded
        assert result.order.status == "refunded"
        assert len(payments.list_refunds(paid.id)) == 2

    def test_full_refund_defaults_to_balance(self, world, paid):
        result = world.payments().create_refund(paid.id, "wrong order", refund_type="full")
        assert result.refund["amount"] == "10.000"
        assert result.order.status == "refunded"

    def test_exceeding_balance(self, world, paid):
        world.payments().create_refund(paid.id, "partial", amount="8")
        with pytest.raises(MoneyMismatch) as exc_info:
            world.payments().create_refund(paid.id, "too much", amount="5")
        assert exc_info.value.code == ReasonCode.REFUND_EXCEEDS_BALANCE

    def test_already_refunded(self, world, paid):
        world.payments().create_refund(paid.id, "all", refund_type="full")
        with pytest.raises(PreconditionFailed) as exc_info:
            world.payments().create_refund(paid.id, "again", amount="1")
        assert exc_info.value.code == ReasonCode.ALREADY_REFUNDED

    def test_unpaid_order(self, world, shift):
        order = world.order_with_items("10.000")
        with pytest.raises(PreconditionFailed) as exc_info:
            world.payments().create_refund(order.id, "nope", amount="1")
        assert exc_info.value.code == ReasonCode.INVALID_TRANSITION

    def test_reason_required(self, world, paid):
        with pytest.raises(ValidationError) as exc_info:
            world.payments().create_refund(paid.id, " ", amount="1")
        assert exc_info.value.code == ReasonCode.REASON_REQUIRED

    def test_partial_needs_amount(self, world, paid):
        with pytest.raises(ValidationError, match="amount"):
            world.payments().create_refund(paid.id, "why")


# ── Reopen rounds ────────────────────────────────────────────

class TestPaymentRounds:
    def test_reopened_order_paid_again(self, world, shift):
        order = world.order_with_items("10.000")
        payments = world.payments()
        payments.complete_payment(order.id, [cash("10.000")])
        world.orders().reopen_order(order.id, "add dessert")
        world.orders().add_item(_dessert(order.id))
        result = payments.complete_payment(order.id, [visa("13.000")])

        assert result.order.payment_round == 2
        current = payments.list_payments(order.id)
        assert [(p["method"], p["amount"]) for p in current] == [("visa", D("13.000"))]
        assert len(payments.list_payments(order.id, current_round_only=False)) == 2


def _dessert(order_id):
    return AddItemRequest(order_id=order_id, name="Kunafa", price=D("3.000"))
