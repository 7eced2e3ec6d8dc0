"""
POS Feature Flags - Flag Sources
================================
Engines only ever read flags through FeatureFlagProvider. The
back office owns writing them; tests and local setups use the
in-memory provider below.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from core.feature_flags.models import FeatureFlag, FlagScope


class FeatureFlagProvider(Protocol):
    def get_flags_for_restaurant(
        self, restaurant_id: str
    ) -> tuple[FeatureFlag, ...]:
        ...


class InMemoryFeatureFlagProvider:
    """Holds at most one flag per scope; the last one set wins."""

    def __init__(self, flags: Iterable[FeatureFlag] | None = None):
        self._by_scope: dict[FlagScope, FeatureFlag] = {}
        for flag in flags or ():
            self.set_flag(flag)

    def set_flag(self, flag: FeatureFlag) -> None:
        self._by_scope[flag.scope] = flag

    def get_flags_for_restaurant(
        self, restaurant_id: str
    ) -> tuple[FeatureFlag, ...]:
        return tuple(
            flag for scope, flag in self._by_scope.items()
            if scope[1] == restaurant_id
        )
