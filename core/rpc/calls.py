"""
POS Remote Procedures - Caller Helpers
======================================
Turn a RemoteResult back into data or a typed PosError.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from core.errors import PosError, RemoteOperationFailed, error_from_dict
from core.rpc.contracts import RemoteProcedureClient

logger = logging.getLogger("pos.rpc")

# Error kinds the caller can act on; everything else is a hard stop.
_DOMAIN_ERROR_KINDS = frozenset({
    "ValidationError",
    "AccessDenied",
    "PreconditionFailed",
    "AlreadyPaid",
    "RecordNotFound",
    "MoneyMismatch",
})


def call_procedure(
    client: RemoteProcedureClient,
    name: str,
    payload: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    Invoke `name` and return its data.

    Raises the rebuilt domain error for business failures and
    RemoteOperationFailed for transport or server failures.
    """
    try:
        result = client.invoke(name, payload)
    except PosError:
        raise
    except Exception as exc:
        logger.error(f"Procedure {name} transport failure: {exc}", exc_info=True)
        raise RemoteOperationFailed(name, str(exc)) from exc

    if result.success:
        return dict(result.data)

    error = result.error or {}
    if error.get("kind") in _DOMAIN_ERROR_KINDS:
        raise error_from_dict(error)

    raise RemoteOperationFailed(
        name,
        error.get("message") or "unknown failure",
        code=error.get("code"),
        details=error.get("details"),
    )
