"""
POS Core Time
=============
Injected clocks: SystemClock in production, FixedClock in tests.
"""

from core.time.clock import Clock, FixedClock, SystemClock

__all__ = ["Clock", "FixedClock", "SystemClock"]
