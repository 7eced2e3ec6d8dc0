"""
POS Core Resilience - Session Circuit Breaker
=============================================
Models the availability state of a non-critical subsystem
(e.g. the audit trail) for one session:
  CLOSED → OPEN

A breaker trips when the subsystem hits a wall it cannot get past
in this session (a permission denial). Once OPEN, callers skip the
subsystem until reset() is called explicitly. The breaker is an
object owned by the session, never module state.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Optional


# ══════════════════════════════════════════════════════════════
# BREAKER STATE ENUM
# ══════════════════════════════════════════════════════════════

class BreakerState(Enum):
    CLOSED = "CLOSED"   # Calls go through
    OPEN = "OPEN"       # Calls are skipped


# ══════════════════════════════════════════════════════════════
# SESSION CIRCUIT BREAKER
# ══════════════════════════════════════════════════════════════

class SessionCircuitBreaker:
    """
    Session-scoped breaker for one subsystem.

    Tracks the state, the reason it tripped and whether the
    trip has already been reported, so the warning is emitted
    once per session.
    """

    def __init__(self, name: str) -> None:
        if not name:
            raise ValueError("name must be non-empty.")
        self._name = name
        self._state = BreakerState.CLOSED
        self._reason: Optional[str] = None
        self._warned = False
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def allows_calls(self) -> bool:
        return self._state == BreakerState.CLOSED

    def trip(self, reason: str) -> bool:
        """
        Open the breaker. Returns True only for the first trip since
        the last reset, so the caller knows whether to warn.
        """
        with self._lock:
            self._state = BreakerState.OPEN
            self._reason = reason
            if self._warned:
                return False
            self._warned = True
            return True

    def reset(self) -> None:
        with self._lock:
            self._state = BreakerState.CLOSED
            self._reason = None
            self._warned = False
