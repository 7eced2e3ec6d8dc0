"""
POS Engines - Procedure Registry
================================
Wires every engine's atomic procedures into one host.
"""

from __future__ import annotations

from typing import Optional

from core.bootstrap import run_bootstrap_checks
from core.config.rules import ConfigStore
from core.feature_flags.provider import FeatureFlagProvider
from core.rpc.host import ProcedureHost
from core.store.protocol import DataStore
from core.time.clock import Clock
from engines.inventory.procedures import INVENTORY_PROCEDURES
from engines.payments.procedures import PAYMENT_PROCEDURES
from engines.qr_orders.procedures import QR_ORDER_PROCEDURES

ENGINE_PROCEDURES = (
    PAYMENT_PROCEDURES,
    QR_ORDER_PROCEDURES,
    INVENTORY_PROCEDURES,
)


def build_procedure_host(
    *,
    store: DataStore,
    clock: Clock,
    config: ConfigStore,
    flags: Optional[FeatureFlagProvider] = None,
) -> ProcedureHost:
    host = ProcedureHost(store=store, clock=clock, config=config, flags=flags)
    for procedures in ENGINE_PROCEDURES:
        host.register_all(procedures)
    run_bootstrap_checks(host, store)
    return host
