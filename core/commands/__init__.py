"""
POS Commands - Rejection Vocabulary
===================================
Checks that refuse an action answer with a RejectionReason whose
code comes from ReasonCode; None means the action may proceed.
"""

from core.commands.rejection import ReasonCode, RejectionReason

__all__ = ["ReasonCode", "RejectionReason"]
