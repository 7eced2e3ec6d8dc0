"""
POS Tables Engine
=================
Item transfer, order split, merge and table moves.
"""

from engines.tables.services import (
    MergeResult,
    SplitResult,
    TableService,
    TransferResult,
)

__all__ = ["MergeResult", "SplitResult", "TableService", "TransferResult"]
