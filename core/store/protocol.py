"""
POS Store - DataStore Protocol
==============================
The generic data store the POS core is written against:
select / insert / update / delete with filters, plus a
transaction scope for operations that must apply all-or-nothing.

Rows are plain dicts. Implementations enforce nothing about
tenancy; callers scope every query (see core.security).
"""

from __future__ import annotations

from typing import Any, ContextManager, Dict, List, Mapping, Optional, Protocol, Sequence


Row = Dict[str, Any]


class DataStore(Protocol):
    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        for_update: bool = False,
    ) -> List[Row]:
        """
        Return matching rows. order_by entries prefixed with '-' sort
        descending. for_update locks the rows until the enclosing
        transaction ends.
        """
        ...

    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]:
        """Insert rows and return them as stored (ids assigned)."""
        ...

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> List[Row]:
        """Apply `patch` to matching rows and return the updated rows."""
        ...

    def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        """Delete matching rows (cascading to owned children)."""
        ...

    def transaction(self) -> ContextManager[Any]:
        """All writes inside the block commit together or not at all."""
        ...
