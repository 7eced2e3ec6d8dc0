"""
POS Core Security - Public API
==============================
Tenant isolation and role checks.
"""

from core.security.tenant_isolation import (
    check_role,
    check_tenant_isolation,
    enforce_role,
    enforce_tenant_scope,
    scope_filters,
)

__all__ = [
    "check_role",
    "check_tenant_isolation",
    "enforce_role",
    "enforce_tenant_scope",
    "scope_filters",
]
