"""
POS Feature Flags - Flag Keys and Defaults
==========================================
A flag that has never been set for a restaurant or branch
resolves to the default listed here.
"""

from __future__ import annotations


# ══════════════════════════════════════════════════════════════
# FLAG KEY CONSTANTS
# ══════════════════════════════════════════════════════════════

FLAG_KDS = "kds.enabled"
FLAG_INVENTORY = "inventory.enabled"
PAYMENT_METHOD_FLAG_PREFIX = "payments.method."


def payment_method_flag(method: str) -> str:
    return f"{PAYMENT_METHOD_FLAG_PREFIX}{method}"


# ══════════════════════════════════════════════════════════════
# DEFAULTS
# ══════════════════════════════════════════════════════════════

# Cashier payment methods enabled out of the box.
DEFAULT_ENABLED_PAYMENT_METHODS = frozenset({"cash", "visa"})

FLAG_DEFAULTS = {
    FLAG_KDS: False,
    FLAG_INVENTORY: True,
}


def default_for(flag_key: str) -> bool:
    if flag_key.startswith(PAYMENT_METHOD_FLAG_PREFIX):
        method = flag_key[len(PAYMENT_METHOD_FLAG_PREFIX):]
        return method in DEFAULT_ENABLED_PAYMENT_METHODS
    return FLAG_DEFAULTS.get(flag_key, False)
