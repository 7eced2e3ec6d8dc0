"""
POS Core - Error Taxonomy
=========================
Structured errors raised by POS services and remote procedures.

Every error carries:
- code:    machine-readable reason (ReasonCode value)
- message: human-readable explanation
- details: structured payload for UI messaging (never contains
           data from another tenant)

Errors cross the remote procedure boundary as dicts
(to_dict / error_from_dict) and are rebuilt on the caller side.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from core.primitives.wire import to_jsonable


class PosError(Exception):
    """Base error for POS operations."""

    default_code = "POS_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details or {})
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "kind": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": to_jsonable(self.details),
        }


class ValidationError(PosError, ValueError):
    """Malformed input. Never retried automatically."""

    default_code = "VALIDATION_FAILED"


class AccessDenied(PosError):
    """Session is not authorized for the target restaurant/branch or action."""

    default_code = "PERMISSION_DENIED"


class PreconditionFailed(PosError):
    """Operation attempted against a record in the wrong state."""

    default_code = "PRECONDITION_FAILED"

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.current_status = current_status
        merged = dict(details or {})
        if current_status is not None:
            merged.setdefault("current_status", current_status)
        super().__init__(message, code=code, details=merged)


class AlreadyPaid(PreconditionFailed):
    """Another caller already completed payment for this order."""

    default_code = "ALREADY_PAID"


class RecordNotFound(PreconditionFailed):
    """Referenced record does not exist (or is outside the caller's scope)."""

    default_code = "NOT_FOUND"


class MoneyMismatch(PosError):
    """Payment total violates the exactness/coverage rules."""

    default_code = "MONEY_MISMATCH"

    def __init__(
        self,
        message: str,
        order_total: Decimal,
        payment_total: Decimal,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.order_total = Decimal(order_total)
        self.payment_total = Decimal(payment_total)
        self.shortfall = max(Decimal("0"), self.order_total - self.payment_total)
        self.excess = max(Decimal("0"), self.payment_total - self.order_total)
        merged = dict(details or {})
        merged.update(
            {
                "order_total": self.order_total,
                "payment_total": self.payment_total,
                "shortfall": self.shortfall,
                "excess": self.excess,
            }
        )
        super().__init__(message, code=code, details=merged)


class RemoteOperationFailed(PosError):
    """
    The atomic procedure call itself failed.

    The transition may have been applied server-side before the
    response was lost: re-fetch the record before retrying.
    """

    default_code = "REMOTE_OPERATION_FAILED"

    def __init__(
        self,
        procedure: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.procedure = procedure
        super().__init__(
            f"Remote procedure '{procedure}' failed: {message}",
            code=code,
            details=details,
        )


class SideEffectFailed(PosError):
    """A best-effort side effect failed. Logged, never propagated."""

    default_code = "SIDE_EFFECT_FAILED"

    def __init__(self, effect: str, cause: Exception):
        self.effect = effect
        self.cause = cause
        super().__init__(
            f"Side effect '{effect}' failed: {type(cause).__name__}: {cause}",
            details={"effect": effect},
        )


# ══════════════════════════════════════════════════════════════
# WIRE CONVERSION
# ══════════════════════════════════════════════════════════════

def error_from_dict(data: dict) -> PosError:
    """
    Rebuild a PosError from its wire form.

    Unknown kinds fall back to the PosError base so the caller
    still sees code and message.
    """
    kind = data.get("kind", "PosError")
    code = data.get("code")
    message = data.get("message") or "Unknown error."
    details = dict(data.get("details") or {})

    if kind == "MoneyMismatch":
        return MoneyMismatch(
            message,
            order_total=Decimal(str(details.pop("order_total", "0"))),
            payment_total=Decimal(str(details.pop("payment_total", "0"))),
            code=code,
            details={
                k: v for k, v in details.items()
                if k not in ("shortfall", "excess")
            },
        )
    if kind in ("PreconditionFailed", "AlreadyPaid", "RecordNotFound"):
        cls = {
            "PreconditionFailed": PreconditionFailed,
            "AlreadyPaid": AlreadyPaid,
            "RecordNotFound": RecordNotFound,
        }[kind]
        return cls(
            message,
            current_status=details.get("current_status"),
            code=code,
            details=details,
        )

    cls = {
        "ValidationError": ValidationError,
        "AccessDenied": AccessDenied,
    }.get(kind, PosError)
    return cls(message, code=code, details=details)


def raise_rejection(rejection, error_cls=PreconditionFailed, **kwargs) -> None:
    """Raise `error_cls` for a policy RejectionReason; no-op for None."""
    if rejection is None:
        return
    raise error_cls(rejection.message, code=rejection.code, **kwargs)
