"""
Tests for the order and shift state machines.
"""

import pytest

from core.commands.rejection import ReasonCode
from core.errors import AlreadyPaid, PreconditionFailed, ValidationError
from core.primitives.workflow import Transition, WorkflowDefinition, build_transitions
from engines.orders.state_machine import (
    ABSORB,
    CANCEL,
    CLOSE_SHIFT,
    CONFIRM_QR,
    DISPATCH,
    HOLD,
    KITCHEN_CONFIRM,
    KITCHEN_DISPATCH,
    ORDER_WORKFLOW,
    PAY,
    REFUND,
    REJECT_QR,
    REOPEN,
    RESUME,
    SHIFT_WORKFLOW,
    VOID,
    OrderStatus,
    assert_order_transition,
    assert_shift_transition,
    require_reason,
)


# ── Generic workflow ─────────────────────────────────────────

class TestWorkflowDefinition:
    def test_duplicate_actions_rejected(self):
        t = Transition("go", frozenset({"a"}), "b")
        with pytest.raises(ValueError, match="Duplicate action"):
            build_transitions(t, t)

    def test_transition_from_terminal_state_rejected(self):
        with pytest.raises(ValueError, match="terminal"):
            WorkflowDefinition(
                name="Thing",
                initial_states=frozenset({"a"}),
                terminal_states=frozenset({"z"}),
                transitions=build_transitions(
                    Transition("revive", frozenset({"z"}), "a"),
                ),
            )

    def test_unknown_action(self):
        with pytest.raises(ValueError, match="no action 'fly'"):
            ORDER_WORKFLOW.check("fly", "open")

    def test_empty_from_states_rejected(self):
        with pytest.raises(ValueError, match="from_states"):
            Transition("go", frozenset(), "b")


# ── Order lifecycle ──────────────────────────────────────────

class TestOrderTransitions:
    @pytest.mark.parametrize("action, start, end", [
        (HOLD, "open", "held"),
        (RESUME, "held", "open"),
        (KITCHEN_DISPATCH, "open", "new"),
        (KITCHEN_CONFIRM, "open", "confirmed"),
        (VOID, "open", "voided"),
        (CANCEL, "held", "cancelled"),
        (PAY, "open", "paid"),
        (PAY, "confirmed", "paid"),
        (PAY, "new", "paid"),
        (REFUND, "paid", "refunded"),
        (REOPEN, "paid", "open"),
        (CONFIRM_QR, "pending", "confirmed"),
        (DISPATCH, "confirmed", "new"),
        (REJECT_QR, "pending", "cancelled"),
        (ABSORB, "confirmed", "cancelled"),
    ])
    def test_allowed(self, action, start, end):
        assert assert_order_transition(action, start) == end

    def test_void_paid_order_rejected(self):
        with pytest.raises(PreconditionFailed) as exc_info:
            assert_order_transition(VOID, "paid")
        assert exc_info.value.code == ReasonCode.INVALID_TRANSITION
        assert exc_info.value.current_status == "paid"

    def test_pay_settled_order_is_already_paid(self):
        with pytest.raises(AlreadyPaid):
            assert_order_transition(PAY, "paid")
        with pytest.raises(AlreadyPaid):
            assert_order_transition(PAY, "refunded")

    def test_pay_held_order_is_plain_precondition(self):
        with pytest.raises(PreconditionFailed) as exc_info:
            assert_order_transition(PAY, "held")
        assert not isinstance(exc_info.value, AlreadyPaid)

    def test_pending_qr_order_cannot_be_paid(self):
        with pytest.raises(PreconditionFailed):
            assert_order_transition(PAY, "pending")

    def test_terminal_message_names_state(self):
        rejection = ORDER_WORKFLOW.check(RESUME, "voided")
        assert rejection is not None
        assert "terminal state 'voided'" in rejection.message

    @pytest.mark.parametrize("state", ["voided", "cancelled", "refunded"])
    def test_terminal_states_accept_nothing(self, state):
        assert ORDER_WORKFLOW.allowed_actions(state) == frozenset()

    def test_only_resume_and_reopen_lead_back_to_open(self):
        into_open = {
            state for state in ORDER_WORKFLOW.states
            if OrderStatus.OPEN.value in ORDER_WORKFLOW.allowed_next_states(state)
        }
        assert into_open == {"held", "paid"}
        assert ORDER_WORKFLOW.allowed_actions("paid") >= {REOPEN}


class TestShiftTransitions:
    def test_close_open_shift(self):
        assert assert_shift_transition(CLOSE_SHIFT, "open") == "closed"

    def test_close_closed_shift(self):
        with pytest.raises(PreconditionFailed) as exc_info:
            assert_shift_transition(CLOSE_SHIFT, "closed")
        assert exc_info.value.code == ReasonCode.SHIFT_NOT_OPEN

    def test_closed_is_terminal(self):
        assert SHIFT_WORKFLOW.is_terminal("closed")


# ── Reasons ──────────────────────────────────────────────────

class TestRequireReason:
    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_empty_reason_rejected(self, reason):
        with pytest.raises(ValidationError, match="reason is required") as exc_info:
            require_reason(reason, "void")
        assert exc_info.value.code == ReasonCode.REASON_REQUIRED

    def test_trimmed(self):
        assert require_reason("  wrong table  ", "cancel") == "wrong table"

    def test_capped(self):
        assert len(require_reason("x" * 900, "void")) == 500
