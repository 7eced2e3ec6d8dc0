"""
Tests for core.rpc - procedure host, in-process client and call helpers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.commands.rejection import ReasonCode
from core.config.rules import InMemoryConfigStore
from core.context.session import ROLE_CASHIER, PosSession
from core.errors import (
    AlreadyPaid,
    MoneyMismatch,
    PosError,
    RemoteOperationFailed,
    ValidationError,
)
from core.rpc import (
    InProcessProcedureClient,
    ProcedureHost,
    RemoteResult,
    call_procedure,
)
from core.store.memory import InMemoryDataStore
from core.store.tables import ORDERS
from core.time.clock import FixedClock


NOW = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
SESSION = PosSession(
    user_id="cashier-1", role=ROLE_CASHIER, restaurant_id="rest-1", branch_id="branch-1",
)


def _host():
    store = InMemoryDataStore(clock=FixedClock(NOW))
    host = ProcedureHost(store=store, clock=FixedClock(NOW), config=InMemoryConfigStore())
    return store, host


class BrokenClient:
    def invoke(self, name, payload):
        raise ConnectionError("network unreachable")


# ── Host ─────────────────────────────────────────────────────

class TestProcedureHost:
    def test_success_is_json_safe(self):
        _, host = _host()
        host.register("echo", lambda ctx, payload: {"amount": Decimal("1.500"), "at": NOW})
        result = host.execute("echo", {}, SESSION)
        assert result.success
        assert result.data == {"amount": "1.500", "at": NOW.isoformat()}

    def test_handler_sees_session_and_payload(self):
        _, host = _host()
        host.register(
            "whoami",
            lambda ctx, payload: {"user": ctx.session.user_id, "x": payload["x"]},
        )
        result = host.execute("whoami", {"x": 1}, SESSION)
        assert result.data == {"user": "cashier-1", "x": 1}

    def test_unknown_procedure(self):
        _, host = _host()
        result = host.execute("missing", {}, SESSION)
        assert not result.success
        assert result.error["code"] == "UNKNOWN_PROCEDURE"

    def test_duplicate_registration_rejected(self):
        _, host = _host()
        host.register("a", lambda ctx, p: {})
        with pytest.raises(ValueError, match="already registered"):
            host.register("a", lambda ctx, p: {})

    def test_domain_error_rolls_back(self):
        store, host = _host()

        def handler(ctx, payload):
            ctx.store.insert(ORDERS, [{"status": "paid"}])
            raise AlreadyPaid("Order is already paid.", current_status="paid")

        host.register("pay", handler)
        result = host.execute("pay", {}, SESSION)
        assert not result.success
        assert result.error["kind"] == "AlreadyPaid"
        assert store.select(ORDERS) == []

    def test_unexpected_error_is_generic(self, caplog):
        store, host = _host()

        def handler(ctx, payload):
            ctx.store.insert(ORDERS, [{"status": "paid"}])
            raise KeyError("secret internals")

        host.register("boom", handler)
        with caplog.at_level(logging.ERROR, logger="pos.rpc"):
            result = host.execute("boom", {}, SESSION)
        assert result.error["code"] == ReasonCode.UNEXPECTED
        assert "secret" not in result.error["message"]
        assert "failed unexpectedly" in caplog.text
        assert store.select(ORDERS) == []

    def test_procedure_names_sorted(self):
        _, host = _host()
        host.register_all({"b": lambda c, p: {}, "a": lambda c, p: {}})
        assert host.procedure_names == ("a", "b")

    def test_audit_breaker_shared_across_calls(self):
        _, host = _host()
        seen = []
        host.register("peek", lambda ctx, payload: seen.append(ctx.audit.breaker) or {})
        host.execute("peek", {}, SESSION)
        host.execute("peek", {}, SESSION)
        other = PosSession(
            user_id="cashier-2", role=ROLE_CASHIER, restaurant_id="rest-1", branch_id="branch-1",
        )
        host.execute("peek", {}, other)

        assert seen[0] is seen[1] is host.breaker_for(SESSION)
        assert seen[2] is not seen[0]


# ── Result ───────────────────────────────────────────────────

class TestRemoteResult:
    def test_success_cannot_carry_error(self):
        with pytest.raises(ValueError):
            RemoteResult(success=True, error={"code": "X"})

    def test_failure_needs_error(self):
        with pytest.raises(ValueError):
            RemoteResult(success=False)


# ── Caller side ──────────────────────────────────────────────

class TestCallProcedure:
    def test_returns_data(self):
        _, host = _host()
        host.register("ok", lambda ctx, p: {"value": p["value"]})
        client = InProcessProcedureClient(host, SESSION)
        assert call_procedure(client, "ok", {"value": Decimal("2.5")}) == {"value": "2.5"}

    def test_domain_errors_rebuilt(self):
        _, host = _host()

        def handler(ctx, payload):
            raise MoneyMismatch(
                "short", order_total=Decimal("10.500"), payment_total=Decimal("10.000"),
                code=ReasonCode.UNDERPAYMENT,
            )

        host.register("pay", handler)
        client = InProcessProcedureClient(host, SESSION)
        with pytest.raises(MoneyMismatch) as exc_info:
            call_procedure(client, "pay", {})
        assert exc_info.value.shortfall == Decimal("0.500")

    def test_validation_error_rebuilt(self):
        _, host = _host()

        def handler(ctx, payload):
            raise ValidationError("bad", code=ReasonCode.MISSING_FIELDS)

        host.register("v", handler)
        with pytest.raises(ValidationError, match="bad"):
            call_procedure(InProcessProcedureClient(host, SESSION), "v", {})

    def test_server_failure_is_remote_operation_failed(self):
        _, host = _host()
        host.register("boom", lambda ctx, p: 1 / 0)
        with pytest.raises(RemoteOperationFailed) as exc_info:
            call_procedure(InProcessProcedureClient(host, SESSION), "boom", {})
        assert exc_info.value.code == ReasonCode.UNEXPECTED

    def test_transport_failure_is_remote_operation_failed(self):
        with pytest.raises(RemoteOperationFailed, match="network unreachable") as exc_info:
            call_procedure(BrokenClient(), "complete-payment", {})
        assert exc_info.value.procedure == "complete-payment"
        assert isinstance(exc_info.value, PosError)
