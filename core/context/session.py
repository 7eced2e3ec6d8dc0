"""
POS Context - PosSession
========================
Immutable identity of the caller: who they are, which restaurant
they act for and, for branch-bound staff, which branch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


ROLE_OWNER = "owner"
ROLE_CASHIER = "cashier"
ROLE_SYSTEM_ADMIN = "system_admin"

VALID_ROLES = frozenset({ROLE_OWNER, ROLE_CASHIER, ROLE_SYSTEM_ADMIN})


@dataclass(frozen=True)
class PosSession:
    """
    Canonical session context.

    A cashier is normally bound to one branch. Owners act on the whole
    restaurant (branch_id None) unless they pick a branch.
    """

    user_id: str
    role: str
    restaurant_id: Optional[str]
    branch_id: Optional[str] = None

    def __post_init__(self):
        if not self.user_id or not isinstance(self.user_id, str):
            raise ValueError("user_id must be a non-empty string.")

        if self.role not in VALID_ROLES:
            raise ValueError(
                f"role '{self.role}' not valid. "
                f"Must be one of: {sorted(VALID_ROLES)}"
            )

        if self.role != ROLE_SYSTEM_ADMIN and not self.restaurant_id:
            raise ValueError("restaurant_id is required for restaurant staff.")

    @property
    def is_owner(self) -> bool:
        return self.role == ROLE_OWNER

    def with_branch(self, branch_id: Optional[str]) -> "PosSession":
        return PosSession(
            user_id=self.user_id,
            role=self.role,
            restaurant_id=self.restaurant_id,
            branch_id=branch_id,
        )
