"""
POS Store - In-Memory DataStore
===============================
Deterministic, thread-safe DataStore used by tests and by the
in-process procedure host.

Transactions hold the store lock for their whole duration, so
two transactions never interleave: the second one observes
everything the first committed. On exception every table is
restored from the snapshot taken at transaction start.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from core.store.errors import StoreError, UnknownTableError
from core.store.filters import row_matches
from core.store.protocol import Row
from core.store.tables import ALL_TABLES, CASCADES
from core.time.clock import Clock, SystemClock

logger = logging.getLogger("pos.store")


def _sort_key(column: str):
    def key(row: Row):
        value = row.get(column)
        return (value is None, value if value is not None else 0)
    return key


class InMemoryDataStore:
    """In-memory implementation of the DataStore protocol."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        id_factory: Optional[Callable[[], str]] = None,
        tables: Optional[Sequence[str]] = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._known_tables = frozenset(tables) if tables else ALL_TABLES
        self._tables: Dict[str, Dict[str, Row]] = {
            name: {} for name in self._known_tables
        }
        self._lock = threading.RLock()
        self._write_failures: Dict[str, StoreError] = {}

    # ── test hooks ────────────────────────────────────────────

    def fail_writes(self, table: str, error: StoreError) -> None:
        """Make every write to `table` raise `error` until cleared."""
        self._table(table)
        self._write_failures[table] = error

    def clear_failures(self) -> None:
        self._write_failures.clear()

    # ── DataStore protocol ────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator["InMemoryDataStore"]:
        with self._lock:
            snapshot = copy.deepcopy(self._tables)
            try:
                yield self
            except BaseException:
                self._tables = snapshot
                raise

    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        columns: Optional[Sequence[str]] = None,
        order_by: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
        for_update: bool = False,
    ) -> List[Row]:
        with self._lock:
            rows = [
                copy.deepcopy(row)
                for row in self._table(table).values()
                if row_matches(row, filters)
            ]

        for column in reversed(list(order_by or ())):
            descending = column.startswith("-")
            name = column.lstrip("-")
            rows.sort(key=_sort_key(name), reverse=descending)

        if limit is not None:
            rows = rows[:limit]

        if columns:
            rows = [{c: row.get(c) for c in columns} for row in rows]
        return rows

    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> List[Row]:
        with self._lock:
            target = self._table(table)
            self._check_writable(table)
            inserted: List[Row] = []
            now = self._clock.now_utc()
            for row in rows:
                stored = copy.deepcopy(dict(row))
                stored.setdefault("id", self._id_factory())
                stored.setdefault("created_at", now)
                if stored["id"] in target:
                    raise StoreError(
                        f"Duplicate primary key '{stored['id']}' in '{table}'."
                    )
                inserted.append(stored)
            for stored in inserted:
                target[stored["id"]] = stored
            return copy.deepcopy(inserted)

    def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> List[Row]:
        with self._lock:
            target = self._table(table)
            self._check_writable(table)
            updated: List[Row] = []
            for row in target.values():
                if row_matches(row, filters):
                    row.update(copy.deepcopy(dict(patch)))
                    if "updated_at" in row and "updated_at" not in patch:
                        row["updated_at"] = self._clock.now_utc()
                    updated.append(copy.deepcopy(row))
            return updated

    def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        with self._lock:
            target = self._table(table)
            self._check_writable(table)
            doomed = [rid for rid, row in target.items() if row_matches(row, filters)]
            for child_table, fk in CASCADES.get(table, ()):
                if child_table in self._tables:
                    for rid in doomed:
                        self.delete(child_table, {fk: rid})
            for rid in doomed:
                del target[rid]
            if doomed:
                logger.debug(f"Deleted {len(doomed)} row(s) from '{table}'")
            return len(doomed)

    # ── internals ─────────────────────────────────────────────

    def _table(self, table: str) -> Dict[str, Row]:
        if table not in self._known_tables:
            raise UnknownTableError(table)
        return self._tables[table]

    def _check_writable(self, table: str) -> None:
        error = self._write_failures.get(table)
        if error is not None:
            raise error
