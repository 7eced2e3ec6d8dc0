"""
POS Payments Engine
===================
Payment validation, atomic completion, table checkout and refunds.
"""

from engines.payments.methods import ALLOWED_PAYMENT_METHODS, PaymentMethod
from engines.payments.procedures import PAYMENT_PROCEDURES
from engines.payments.services import (
    PaymentCompletion,
    PaymentService,
    RefundResult,
    TableCheckout,
)
from engines.payments.validation import (
    PaymentAssessment,
    PaymentLine,
    allocate_payments,
    assess_payment,
)

__all__ = [
    "ALLOWED_PAYMENT_METHODS",
    "PAYMENT_PROCEDURES",
    "PaymentAssessment",
    "PaymentCompletion",
    "PaymentLine",
    "PaymentMethod",
    "PaymentService",
    "RefundResult",
    "TableCheckout",
    "allocate_payments",
    "assess_payment",
]
