"""
POS Core Security - Tenant Isolation Enforcement
================================================
Every row read or written is scoped to a restaurant_id and,
for branch-bound sessions, a branch_id.

Error messages MUST NOT leak cross-tenant data.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.context.session import ROLE_SYSTEM_ADMIN, PosSession
from core.errors import AccessDenied


# ══════════════════════════════════════════════════════════════
# ISOLATION CHECK
# ══════════════════════════════════════════════════════════════

def check_tenant_isolation(
    session: PosSession,
    restaurant_id: Optional[str],
    branch_id: Optional[str] = None,
) -> Optional[RejectionReason]:
    """
    Verify the session may act on the target restaurant/branch.

    Returns None if allowed, RejectionReason if denied.
    Rows without a branch are visible to every branch of the restaurant.
    """
    if session.role == ROLE_SYSTEM_ADMIN:
        return None

    if restaurant_id is None or restaurant_id != session.restaurant_id:
        return RejectionReason(
            code=ReasonCode.RESTAURANT_MISMATCH,
            message="Access denied: session is not authorized for this restaurant.",
            policy_name="check_tenant_isolation",
        )

    if (
        session.branch_id is not None
        and branch_id is not None
        and branch_id != session.branch_id
    ):
        return RejectionReason(
            code=ReasonCode.BRANCH_MISMATCH,
            message="Access denied: session is not authorized for this branch.",
            policy_name="check_tenant_isolation",
        )

    return None


def enforce_tenant_scope(session: PosSession, row: Mapping[str, Any]) -> None:
    """Raise AccessDenied unless `row` is inside the session's scope."""
    rejection = check_tenant_isolation(
        session,
        row.get("restaurant_id"),
        row.get("branch_id"),
    )
    if rejection is not None:
        raise AccessDenied(rejection.message, code=rejection.code)


def check_role(
    session: PosSession,
    allowed_roles: Iterable[str],
    action: str,
) -> Optional[RejectionReason]:
    allowed = frozenset(allowed_roles)
    if session.role in allowed or session.role == ROLE_SYSTEM_ADMIN:
        return None
    return RejectionReason(
        code=ReasonCode.ROLE_NOT_ALLOWED,
        message=f"Role '{session.role}' may not {action}.",
        policy_name="check_role",
    )


def enforce_role(
    session: PosSession,
    allowed_roles: Iterable[str],
    action: str,
) -> None:
    rejection = check_role(session, allowed_roles, action)
    if rejection is not None:
        raise AccessDenied(rejection.message, code=rejection.code)


# ══════════════════════════════════════════════════════════════
# QUERY SCOPE
# ══════════════════════════════════════════════════════════════

def scope_filters(session: PosSession) -> Dict[str, Any]:
    """Equality filters that confine a select to the session's tenant."""
    filters: Dict[str, Any] = {}
    if session.role == ROLE_SYSTEM_ADMIN:
        return filters
    filters["restaurant_id"] = session.restaurant_id
    if session.branch_id is not None:
        filters["branch_id"] = session.branch_id
    return filters
