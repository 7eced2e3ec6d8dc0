"""
POS Feature Flags - Evaluator
=============================
Lookup of (flag, restaurant, branch) falls through three layers:

  1. a flag set for that branch
  2. a restaurant-wide flag (branch_id None)
  3. the registry default

A provider that returns two flags for one scope is resolved toward
DISABLED, so a stray duplicate never turns a feature on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from core.commands.rejection import ReasonCode
from core.feature_flags.models import FeatureFlag
from core.feature_flags.provider import FeatureFlagProvider
from core.feature_flags.registry import default_for, payment_method_flag


@dataclass(frozen=True)
class FeatureFlagEvaluationResult:
    allowed: bool
    rejection_code: Optional[str] = None
    message: str = ""


def _effective_states(
    flags: Iterable[FeatureFlag], flag_key: str,
) -> dict[Optional[str], bool]:
    """branch_id (None for restaurant-wide) -> enabled, for one key."""
    states: dict[Optional[str], bool] = {}
    for flag in flags:
        if flag.flag_key != flag_key:
            continue
        states[flag.branch_id] = states.get(flag.branch_id, True) and flag.enabled
    return states


class FeatureFlagEvaluator:
    @staticmethod
    def is_enabled(
        flag_key: str,
        restaurant_id: str,
        branch_id: Optional[str],
        provider: FeatureFlagProvider | None,
    ) -> bool:
        if provider is None:
            return default_for(flag_key)

        states = _effective_states(
            provider.get_flags_for_restaurant(restaurant_id), flag_key,
        )
        if branch_id is not None and branch_id in states:
            return states[branch_id]
        if None in states:
            return states[None]
        return default_for(flag_key)

    @staticmethod
    def evaluate_for_flag_key(
        flag_key: str,
        restaurant_id: str,
        branch_id: Optional[str],
        provider: FeatureFlagProvider | None,
    ) -> FeatureFlagEvaluationResult:
        if FeatureFlagEvaluator.is_enabled(
            flag_key, restaurant_id, branch_id, provider
        ):
            return FeatureFlagEvaluationResult(allowed=True)
        where = f"branch {branch_id}" if branch_id else f"restaurant {restaurant_id}"
        return FeatureFlagEvaluationResult(
            allowed=False,
            rejection_code=ReasonCode.FEATURE_DISABLED,
            message=f"Feature '{flag_key}' is turned off for {where}.",
        )

    @staticmethod
    def enabled_payment_methods(
        methods: Iterable[str],
        restaurant_id: str,
        branch_id: Optional[str],
        provider: FeatureFlagProvider | None,
    ) -> frozenset[str]:
        return frozenset(
            method for method in methods
            if FeatureFlagEvaluator.is_enabled(
                payment_method_flag(method), restaurant_id, branch_id, provider
            )
        )
