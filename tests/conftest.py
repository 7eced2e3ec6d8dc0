"""
Shared POS test world
=====================
One in-memory restaurant per test: store, clock, settings, feature
flags and a procedure host, plus helpers that build services bound
to a session.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import pytest

from core.audit.trail import AuditTrail
from core.caching import ViewCache
from core.config.rules import InMemoryConfigStore, RestaurantSettings
from core.context.session import ROLE_CASHIER, ROLE_OWNER, PosSession
from core.feature_flags.models import FEATURE_DISABLED, FEATURE_ENABLED, FeatureFlag
from core.feature_flags.provider import InMemoryFeatureFlagProvider
from core.rpc.host import InProcessProcedureClient
from core.store.memory import InMemoryDataStore
from core.store.tables import AUDIT_LOGS
from core.time.clock import FixedClock
from engines.inventory.services import InventoryDeductionHook
from engines.menu.services import FavoriteService
from engines.orders.commands import AddItemRequest, CreateOrderRequest
from engines.orders.services import OrderService
from engines.payments.services import PaymentService
from engines.qr_orders.services import QrOrderService
from engines.registry import build_procedure_host
from engines.shifts.commands import OpenShiftRequest
from engines.shifts.services import ShiftService
from engines.tables.services import TableService


RESTAURANT = "rest-1"
OTHER_RESTAURANT = "rest-2"
BRANCH = "branch-1"
OTHER_BRANCH = "branch-2"
NOW = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class PosWorld:
    """Everything a POS test needs, wired against one in-memory store."""

    def __init__(self, tax_rate="0", service_charge_rate="0"):
        self.clock = FixedClock(NOW)
        self.store = InMemoryDataStore(clock=self.clock)
        self.config = InMemoryConfigStore()
        self.config.save(RestaurantSettings(
            restaurant_id=RESTAURANT,
            tax_rate=Decimal(tax_rate),
            service_charge_rate=Decimal(service_charge_rate),
        ))
        self.flags = InMemoryFeatureFlagProvider()
        self.host = build_procedure_host(
            store=self.store, clock=self.clock, config=self.config, flags=self.flags,
        )
        self.cashier = PosSession(
            user_id="cashier-1", role=ROLE_CASHIER,
            restaurant_id=RESTAURANT, branch_id=BRANCH,
        )
        self.owner = PosSession(
            user_id="owner-1", role=ROLE_OWNER, restaurant_id=RESTAURANT,
        )

    # ── collaborators ─────────────────────────────────────────

    def audit(self, session: Optional[PosSession] = None) -> AuditTrail:
        session = session or self.cashier
        return AuditTrail(
            store=self.store, session=session, clock=self.clock,
            breaker=self.host.breaker_for(session),
        )

    def rpc(self, session: Optional[PosSession] = None) -> InProcessProcedureClient:
        return InProcessProcedureClient(self.host, session or self.cashier)

    def set_flag(self, flag_key: str, enabled: bool, branch_id: Optional[str] = None):
        self.flags.set_flag(FeatureFlag(
            flag_key=flag_key,
            restaurant_id=RESTAURANT,
            branch_id=branch_id,
            status=FEATURE_ENABLED if enabled else FEATURE_DISABLED,
        ))

    # ── services ──────────────────────────────────────────────

    def orders(self, session: Optional[PosSession] = None) -> OrderService:
        return OrderService(
            store=self.store,
            session=session or self.cashier,
            clock=self.clock,
            config=self.config,
            audit=self.audit(session),
            flags=self.flags,
        )

    def shifts(self, session: Optional[PosSession] = None) -> ShiftService:
        return ShiftService(
            store=self.store,
            session=session or self.cashier,
            clock=self.clock,
            audit=self.audit(session),
        )

    def payments(
        self,
        session: Optional[PosSession] = None,
        with_inventory: bool = True,
    ) -> PaymentService:
        rpc = self.rpc(session)
        return PaymentService(
            store=self.store,
            session=session or self.cashier,
            clock=self.clock,
            rpc=rpc,
            audit=self.audit(session),
            flags=self.flags,
            inventory=InventoryDeductionHook(rpc) if with_inventory else None,
        )

    def tables(self, session: Optional[PosSession] = None) -> TableService:
        return TableService(
            store=self.store,
            session=session or self.cashier,
            clock=self.clock,
            audit=self.audit(session),
        )

    def qr(self, session: Optional[PosSession] = None) -> QrOrderService:
        return QrOrderService(
            store=self.store,
            session=session or self.cashier,
            clock=self.clock,
            rpc=self.rpc(session),
            audit=self.audit(session),
            orders=self.orders(session),
        )

    def favorites(
        self,
        cache: ViewCache,
        session: Optional[PosSession] = None,
    ) -> FavoriteService:
        return FavoriteService(
            store=self.store,
            session=session or self.cashier,
            clock=self.clock,
            cache=cache,
            audit=self.audit(session),
        )

    # ── scenario helpers ──────────────────────────────────────

    def open_shift(self, session: Optional[PosSession] = None, opening_cash="50.000"):
        return self.shifts(session).open_shift(
            OpenShiftRequest(opening_cash=Decimal(opening_cash))
        )

    def order_with_items(
        self,
        *prices,
        session: Optional[PosSession] = None,
        table_id: Optional[str] = "T1",
        quantity: int = 1,
    ):
        service = self.orders(session)
        order = service.create_order(CreateOrderRequest(table_id=table_id))
        for index, price in enumerate(prices):
            order = service.add_item(AddItemRequest(
                order_id=order.id,
                name=f"Item {index + 1}",
                price=Decimal(price),
                quantity=quantity,
            ))
        return order

    def audit_actions(self, entity_id: Optional[str] = None) -> List[str]:
        filters = {} if entity_id is None else {"entity_id": entity_id}
        return [
            row["action"]
            for row in self.store.select(AUDIT_LOGS, filters, order_by=["created_at"])
        ]


@pytest.fixture
def world() -> PosWorld:
    return PosWorld()


@pytest.fixture
def taxed_world() -> PosWorld:
    """16% tax, 10% service charge."""
    return PosWorld(tax_rate="0.16", service_charge_rate="0.10")
