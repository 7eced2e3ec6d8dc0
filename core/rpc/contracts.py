"""
POS Remote Procedures - Contracts
=================================
Named atomic operations invoked with a JSON payload. Each returns
{success, data | error}; the caller never assumes partial success.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol


# ══════════════════════════════════════════════════════════════
# PROCEDURE NAMES
# ══════════════════════════════════════════════════════════════

COMPLETE_PAYMENT = "complete-payment"
COMPLETE_TABLE_PAYMENT = "complete-table-payment"
CREATE_REFUND = "create-refund"
CONFIRM_QR_ORDER = "confirm-qr-order"
REJECT_QR_ORDER = "reject-qr-order"
INVENTORY_DEDUCT_FOR_ORDER = "inventory-deduct-for-order"

ALL_PROCEDURE_NAMES = (
    COMPLETE_PAYMENT,
    COMPLETE_TABLE_PAYMENT,
    CREATE_REFUND,
    CONFIRM_QR_ORDER,
    REJECT_QR_ORDER,
    INVENTORY_DEDUCT_FOR_ORDER,
)


# ══════════════════════════════════════════════════════════════
# RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RemoteResult:
    """
    Structured procedure result.

    error is the wire form of a PosError (see core.errors.to_dict).
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.success and self.error is not None:
            raise ValueError("A successful result cannot carry an error.")
        if not self.success and not self.error:
            raise ValueError("A failed result must carry an error.")

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None) -> "RemoteResult":
        return cls(success=True, data=dict(data or {}))

    @classmethod
    def failed(cls, error: Dict[str, Any]) -> "RemoteResult":
        return cls(success=False, error=dict(error))


# ══════════════════════════════════════════════════════════════
# CLIENT PROTOCOL
# ══════════════════════════════════════════════════════════════

class RemoteProcedureClient(Protocol):
    def invoke(self, name: str, payload: Mapping[str, Any]) -> RemoteResult:
        """
        Run procedure `name`. Transport failures raise; business
        failures come back as RemoteResult(success=False).
        """
        ...
