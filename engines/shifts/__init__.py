"""
POS Shifts Engine
=================
Cashier shifts, cash movements and cash reconciliation.
"""

from engines.shifts.commands import (
    CashMovementRequest,
    CashMovementType,
    CloseShiftRequest,
    OpenShiftRequest,
)
from engines.shifts.reconciliation import ShiftReconciliation, reconcile_cash
from engines.shifts.repository import ShiftRepository
from engines.shifts.services import ShiftCloseResult, ShiftService

__all__ = [
    "CashMovementRequest",
    "CashMovementType",
    "CloseShiftRequest",
    "OpenShiftRequest",
    "ShiftReconciliation",
    "reconcile_cash",
    "ShiftRepository",
    "ShiftCloseResult",
    "ShiftService",
]
