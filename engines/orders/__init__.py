"""
POS Orders Engine
=================
Order aggregate, status state machine and order entry service.
"""

from engines.orders.aggregate import (
    DiscountType,
    Order,
    OrderItem,
    OrderItemModifier,
    OrderTotals,
    compute_totals,
)
from engines.orders.commands import (
    AddItemRequest,
    ApplyDiscountRequest,
    CreateOrderRequest,
    ModifierSelection,
)
from engines.orders.repository import OrderRepository
from engines.orders.services import OrderService
from engines.orders.state_machine import (
    ORDER_WORKFLOW,
    PAYABLE_STATUSES,
    SHIFT_WORKFLOW,
    OrderSource,
    OrderStatus,
    OrderType,
    ShiftStatus,
)

__all__ = [
    "DiscountType",
    "Order",
    "OrderItem",
    "OrderItemModifier",
    "OrderTotals",
    "compute_totals",
    "AddItemRequest",
    "ApplyDiscountRequest",
    "CreateOrderRequest",
    "ModifierSelection",
    "OrderRepository",
    "OrderService",
    "ORDER_WORKFLOW",
    "PAYABLE_STATUSES",
    "SHIFT_WORKFLOW",
    "OrderSource",
    "OrderStatus",
    "OrderType",
    "ShiftStatus",
]
