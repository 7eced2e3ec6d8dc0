"""
POS Feature Flags
=================
Restaurant and branch switches for KDS, inventory deduction and
the payment methods a till may accept.
"""

from core.feature_flags.evaluator import FeatureFlagEvaluationResult, FeatureFlagEvaluator
from core.feature_flags.models import FEATURE_DISABLED, FEATURE_ENABLED, FeatureFlag
from core.feature_flags.provider import FeatureFlagProvider, InMemoryFeatureFlagProvider
from core.feature_flags.registry import (
    DEFAULT_ENABLED_PAYMENT_METHODS,
    FLAG_INVENTORY,
    FLAG_KDS,
    default_for,
    payment_method_flag,
)

__all__ = [
    "DEFAULT_ENABLED_PAYMENT_METHODS",
    "FEATURE_DISABLED",
    "FEATURE_ENABLED",
    "FLAG_INVENTORY",
    "FLAG_KDS",
    "FeatureFlag",
    "FeatureFlagEvaluationResult",
    "FeatureFlagEvaluator",
    "FeatureFlagProvider",
    "InMemoryFeatureFlagProvider",
    "default_for",
    "payment_method_flag",
]
