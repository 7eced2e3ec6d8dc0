"""
POS Context - Public API
========================
"""

from core.context.session import (
    ROLE_CASHIER,
    ROLE_OWNER,
    ROLE_SYSTEM_ADMIN,
    VALID_ROLES,
    PosSession,
)

__all__ = [
    "ROLE_CASHIER",
    "ROLE_OWNER",
    "ROLE_SYSTEM_ADMIN",
    "VALID_ROLES",
    "PosSession",
]
