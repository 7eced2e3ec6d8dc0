"""
POS Store - Public API
======================
Generic data store interface, filter predicates and the
in-memory implementation.
"""

from core.store.errors import (
    StoreError,
    StorePermissionDenied,
    UnknownTableError,
)
from core.store.filters import (
    Gte,
    In,
    IsNull,
    Lt,
    Lte,
    NotIn,
    Predicate,
    row_matches,
)
from core.store.memory import InMemoryDataStore
from core.store.protocol import DataStore, Row
from core.store import tables

__all__ = [
    "StoreError",
    "StorePermissionDenied",
    "UnknownTableError",
    "Gte",
    "In",
    "IsNull",
    "Lt",
    "Lte",
    "NotIn",
    "Predicate",
    "row_matches",
    "InMemoryDataStore",
    "DataStore",
    "Row",
    "tables",
]
