"""
POS Bootstrap - Self-Check
==========================
Runs before a procedure host accepts calls.

Check order:
1. Every known procedure has a handler
2. No handler is registered under an unknown name
3. The store answers a read on every table it must serve

No auto-fix. No fallback.
"""

import logging

from core.bootstrap.errors import SystemBootstrapError
from core.rpc.contracts import ALL_PROCEDURE_NAMES
from core.store.errors import StoreError
from core.store.tables import ALL_TABLES

logger = logging.getLogger("pos.bootstrap")


def check_procedure_registry(host):
    registered = set(host.procedure_names)
    missing = sorted(set(ALL_PROCEDURE_NAMES) - registered)
    if missing:
        raise SystemBootstrapError(
            "PROCEDURE_REGISTRY", f"no handler for: {', '.join(missing)}",
        )
    unknown = sorted(registered - set(ALL_PROCEDURE_NAMES))
    if unknown:
        raise SystemBootstrapError(
            "PROCEDURE_REGISTRY", f"unknown procedures: {', '.join(unknown)}",
        )


def check_store_tables(store):
    for table in sorted(ALL_TABLES):
        try:
            store.select(table, limit=1)
        except StoreError as exc:
            raise SystemBootstrapError("STORE_TABLES", f"{table}: {exc}") from exc


def run_bootstrap_checks(host, store):
    logger.info("POS bootstrap self-check starting")
    check_procedure_registry(host)
    check_store_tables(store)
    logger.info("POS bootstrap self-check passed")
