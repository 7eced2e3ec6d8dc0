"""
POS Inventory Engine
====================
Best-effort stock deduction after payment.
"""

from engines.inventory.procedures import INVENTORY_PROCEDURES, deduct_for_order
from engines.inventory.services import DeductionResult, InventoryDeductionHook

__all__ = [
    "DeductionResult",
    "INVENTORY_PROCEDURES",
    "InventoryDeductionHook",
    "deduct_for_order",
]
