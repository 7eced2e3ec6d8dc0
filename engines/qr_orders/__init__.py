"""
POS QR Orders Engine
====================
Customer QR intake and cashier confirmation or rejection.
"""

from engines.qr_orders.commands import QrOrderLine, SubmitQrOrderRequest
from engines.qr_orders.procedures import (
    QR_ORDER_PROCEDURES,
    confirm_qr_order,
    reject_qr_order,
)
from engines.qr_orders.services import QrOrderService, submit_qr_order

__all__ = [
    "QR_ORDER_PROCEDURES",
    "QrOrderLine",
    "QrOrderService",
    "SubmitQrOrderRequest",
    "confirm_qr_order",
    "reject_qr_order",
    "submit_qr_order",
]
