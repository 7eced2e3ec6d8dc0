"""
POS Events - Public API
=======================
"""

from core.events.dispatcher import (
    DispatchReport,
    SideEffect,
    dispatch_side_effects,
)

__all__ = [
    "DispatchReport",
    "SideEffect",
    "dispatch_side_effects",
]
