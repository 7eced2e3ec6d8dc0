"""
POS Inventory Engine - Post-Payment Deduction Hook
==================================================
Client side of inventory-deduct-for-order.

deduct_for_order() NEVER raises: transport errors, server errors
and rejected calls all come back as DeductionResult(success=False)
so the caller can show a warning next to a payment that has
already succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from core.primitives.money import to_amount
from core.rpc.contracts import INVENTORY_DEDUCT_FOR_ORDER, RemoteProcedureClient

logger = logging.getLogger("pos.inventory")

_WARNING_AMOUNTS = ("current_on_hand", "required", "new_on_hand")


@dataclass(frozen=True)
class DeductionResult:
    success: bool
    warnings: Tuple[Dict[str, Any], ...] = ()
    error: Optional[str] = None
    deducted_count: int = 0

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> "DeductionResult":
        warnings = []
        for warning in data.get("warnings") or ():
            parsed = dict(warning)
            for key in _WARNING_AMOUNTS:
                if parsed.get(key) is not None:
                    parsed[key] = to_amount(parsed[key])
            warnings.append(parsed)
        return cls(
            success=bool(data.get("success")),
            warnings=tuple(warnings),
            error=data.get("error"),
            deducted_count=int(data.get("deducted_count") or 0),
        )

    @classmethod
    def failed(cls, error: str) -> "DeductionResult":
        return cls(success=False, error=error)


class InventoryDeductionHook:
    """Triggers stock deduction after a payment commits."""

    def __init__(self, rpc: RemoteProcedureClient):
        self._rpc = rpc

    def deduct_for_order(self, order_id: str) -> DeductionResult:
        try:
            result = self._rpc.invoke(INVENTORY_DEDUCT_FOR_ORDER, {"order_id": order_id})
        except Exception as exc:
            logger.warning(f"Inventory deduction call failed for order {order_id}: {exc}")
            return DeductionResult.failed(str(exc))

        if not result.success:
            message = (result.error or {}).get("message") or "Inventory deduction failed"
            logger.warning(f"Inventory deduction rejected for order {order_id}: {message}")
            return DeductionResult.failed(message)

        deduction = DeductionResult.from_data(result.data)
        if not deduction.success:
            logger.warning(
                f"Inventory deduction failed for order {order_id}: {deduction.error}"
            )
        elif deduction.warnings:
            logger.warning(
                f"Order {order_id} left {len(deduction.warnings)} ingredient(s) "
                f"below zero"
            )
        return deduction
