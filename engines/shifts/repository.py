"""
POS Shifts Engine - Shift Repository
====================================
"""

from __future__ import annotations

from typing import Optional

from core.commands.rejection import ReasonCode
from core.context.session import PosSession
from core.errors import RecordNotFound
from core.security.tenant_isolation import enforce_tenant_scope
from core.store.protocol import DataStore, Row
from core.store.tables import SHIFTS
from engines.orders.state_machine import ShiftStatus


class ShiftRepository:
    def __init__(self, store: DataStore):
        self._store = store

    def get_row(self, shift_id: str, for_update: bool = False) -> Optional[Row]:
        rows = self._store.select(SHIFTS, {"id": shift_id}, for_update=for_update)
        return rows[0] if rows else None

    def require_row(
        self,
        shift_id: str,
        session: Optional[PosSession] = None,
        for_update: bool = False,
    ) -> Row:
        row = self.get_row(shift_id, for_update=for_update)
        if row is None:
            raise RecordNotFound(
                f"Shift '{shift_id}' not found.", code=ReasonCode.SHIFT_NOT_FOUND,
            )
        if session is not None:
            enforce_tenant_scope(session, row)
        return row

    def open_shift_for(
        self,
        cashier_id: str,
        restaurant_id: Optional[str] = None,
        for_update: bool = False,
    ) -> Optional[Row]:
        filters = {"cashier_id": cashier_id, "status": ShiftStatus.OPEN.value}
        if restaurant_id is not None:
            filters["restaurant_id"] = restaurant_id
        rows = self._store.select(
            SHIFTS, filters, order_by=["-opened_at"], limit=1, for_update=for_update,
        )
        return rows[0] if rows else None
