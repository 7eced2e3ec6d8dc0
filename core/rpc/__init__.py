"""
POS Remote Procedures - Public API
==================================
"""

from core.rpc.calls import call_procedure
from core.rpc.contracts import (
    ALL_PROCEDURE_NAMES,
    COMPLETE_PAYMENT,
    COMPLETE_TABLE_PAYMENT,
    CONFIRM_QR_ORDER,
    CREATE_REFUND,
    INVENTORY_DEDUCT_FOR_ORDER,
    REJECT_QR_ORDER,
    RemoteProcedureClient,
    RemoteResult,
)
from core.rpc.host import (
    InProcessProcedureClient,
    ProcedureContext,
    ProcedureHandler,
    ProcedureHost,
)

__all__ = [
    "ALL_PROCEDURE_NAMES",
    "call_procedure",
    "COMPLETE_PAYMENT",
    "COMPLETE_TABLE_PAYMENT",
    "CONFIRM_QR_ORDER",
    "CREATE_REFUND",
    "INVENTORY_DEDUCT_FOR_ORDER",
    "REJECT_QR_ORDER",
    "RemoteProcedureClient",
    "RemoteResult",
    "InProcessProcedureClient",
    "ProcedureContext",
    "ProcedureHandler",
    "ProcedureHost",
]
