"""
POS Core Audit - Best-Effort Audit Trail Emitter
================================================
Appends audit entries to the audit_logs table.

record() NEVER raises. The operation being audited has already
happened; a failed audit write is logged and skipped.

A permission denial trips the session's circuit breaker: further
audit attempts in the session are skipped without touching the
store, and the denial is warned about once.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from core.audit.functions import create_audit_entry
from core.audit.models import AuditAction, AuditLogEntry, EntityType
from core.context.session import PosSession
from core.resilience.breaker import SessionCircuitBreaker
from core.store.errors import StorePermissionDenied
from core.store.protocol import DataStore
from core.store.tables import AUDIT_LOGS
from core.time.clock import Clock

logger = logging.getLogger("pos.audit")


class AuditTrail:
    def __init__(
        self,
        *,
        store: DataStore,
        session: PosSession,
        clock: Clock,
        breaker: Optional[SessionCircuitBreaker] = None,
    ):
        self._store = store
        self._session = session
        self._clock = clock
        self._breaker = breaker or SessionCircuitBreaker("audit")

    @property
    def breaker(self) -> SessionCircuitBreaker:
        return self._breaker

    def record(
        self,
        entity_type: EntityType,
        entity_id: str,
        action: AuditAction,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLogEntry]:
        if not self._session.user_id or not self._session.restaurant_id:
            logger.debug(f"Skipping audit {action.value}: no user or restaurant")
            return None

        if not self._breaker.allows_calls():
            return None

        entry = create_audit_entry(
            user_id=self._session.user_id,
            restaurant_id=self._session.restaurant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            occurred_at=self._clock.now_utc(),
            details=details,
        )

        try:
            with self._store.transaction():
                self._store.insert(AUDIT_LOGS, [entry.to_row()])
        except StorePermissionDenied as exc:
            if self._breaker.trip(str(exc)):
                logger.warning(
                    f"Audit logging disabled for this session "
                    f"(user {self._session.user_id}): {exc}"
                )
            return None
        except Exception as exc:
            logger.warning(
                f"Audit write failed for {action.value} "
                f"on {entity_type.value} {entity_id}: {exc}",
                exc_info=True,
            )
            return None

        logger.debug(f"Audited {action.value} on {entity_type.value} {entity_id}")
        return entry
