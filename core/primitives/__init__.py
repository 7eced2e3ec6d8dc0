"""
POS Core Primitives - Reusable Building Blocks
==============================================
Engine-agnostic primitives consumed by every POS engine.

- Pure Python (no Django dependency)
- Deterministic (same input → same output)

Primitives:
    money     : 3-decimal currency rounding and epsilon comparisons
    wire      : JSON-safe conversion for payloads and audit details
    workflow  : named-transition state machine definitions
"""

from core.primitives.money import (
    EPSILON,
    QUANTUM,
    ZERO,
    amounts_equal,
    exceeds,
    falls_short,
    is_positive,
    round_currency,
    sum_amounts,
    to_amount,
)
from core.primitives.wire import to_jsonable
from core.primitives.workflow import (
    Transition,
    WorkflowDefinition,
    build_transitions,
)

__all__ = [
    "EPSILON",
    "QUANTUM",
    "ZERO",
    "amounts_equal",
    "exceeds",
    "falls_short",
    "is_positive",
    "round_currency",
    "sum_amounts",
    "to_amount",
    "to_jsonable",
    "Transition",
    "WorkflowDefinition",
    "build_transitions",
]
