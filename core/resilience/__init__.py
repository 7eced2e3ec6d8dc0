"""
POS Core Resilience - Public API
================================
Session-scoped circuit breaking for best-effort subsystems.
"""

from core.resilience.breaker import BreakerState, SessionCircuitBreaker

__all__ = [
    "BreakerState",
    "SessionCircuitBreaker",
]
