"""
POS Events - Side-Effect Dispatcher
===================================
Runs the best-effort side effects that follow a committed
operation (audit entries, inventory deduction...).

Dispatch behavior:
1. Execute effects sequentially, in registration order
2. Catch each effect's exception
3. Log the failure
4. Continue to the next effect
5. NEVER undo the committed operation

It only routes. The primary operation is already durable
before any side effect runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Tuple

from core.errors import SideEffectFailed

logger = logging.getLogger("pos.events")

SideEffect = Tuple[str, Callable[[], Any]]


@dataclass
class DispatchReport:
    trigger: str
    results: Dict[str, Any] = field(default_factory=dict)
    failures: List[SideEffectFailed] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)


def dispatch_side_effects(trigger: str, effects: Sequence[SideEffect]) -> DispatchReport:
    """
    Run every effect for `trigger`.

    This function NEVER raises. Failures are wrapped in
    SideEffectFailed, logged and reported.
    """
    report = DispatchReport(trigger=trigger)

    for name, effect in effects:
        try:
            report.results[name] = effect()
            logger.debug(f"Side effect {name} done for {trigger}")

        except Exception as exc:
            failure = SideEffectFailed(name, exc)
            report.failures.append(failure)
            logger.error(
                f"Side effect failed: {name} for {trigger}: {exc}",
                exc_info=True,
            )
            # Continue to next effect, NEVER undo the primary operation

    if report.failures:
        logger.warning(
            f"Dispatch complete: {trigger}: "
            f"{report.succeeded} done, {report.failed} failed"
        )
    return report
