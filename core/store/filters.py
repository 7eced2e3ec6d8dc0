"""
POS Store - Filter Predicates
=============================
A filter is a mapping of column → value. Plain values mean
equality; the predicate classes below express the other
comparisons the store supports on indexed columns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Mapping, Optional


class Predicate:
    lookup = ""

    def matches(self, value: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class In(Predicate):
    values: FrozenSet[Any]
    lookup = "in"

    def __init__(self, values: Iterable[Any]):
        object.__setattr__(self, "values", frozenset(values))

    def matches(self, value: Any) -> bool:
        return value in self.values


@dataclass(frozen=True)
class NotIn(Predicate):
    values: FrozenSet[Any]
    lookup = "not_in"

    def __init__(self, values: Iterable[Any]):
        object.__setattr__(self, "values", frozenset(values))

    def matches(self, value: Any) -> bool:
        return value not in self.values


@dataclass(frozen=True)
class Gte(Predicate):
    bound: Any
    lookup = "gte"

    def matches(self, value: Any) -> bool:
        return value is not None and value >= self.bound


@dataclass(frozen=True)
class Lt(Predicate):
    bound: Any
    lookup = "lt"

    def matches(self, value: Any) -> bool:
        return value is not None and value < self.bound


@dataclass(frozen=True)
class Lte(Predicate):
    bound: Any
    lookup = "lte"

    def matches(self, value: Any) -> bool:
        return value is not None and value <= self.bound


@dataclass(frozen=True)
class IsNull(Predicate):
    is_null: bool = True
    lookup = "isnull"

    def matches(self, value: Any) -> bool:
        return (value is None) == self.is_null


def row_matches(row: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    for column, expected in (filters or {}).items():
        value = row.get(column)
        if isinstance(expected, Predicate):
            if not expected.matches(value):
                return False
        elif value != expected:
            return False
    return True
