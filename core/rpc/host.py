"""
POS Remote Procedures - In-Process Host
=======================================
Registry of named procedures executed against a DataStore.

Execution behavior:
1. Look up the handler by name
2. Run it inside ONE store transaction
3. PosError → structured failure (the transaction rolls back)
4. Any other exception → logged, generic UNEXPECTED failure
5. Success → JSON-safe data

The host is the transport boundary: nothing raised by a handler
escapes it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from core.audit.trail import AuditTrail
from core.commands.rejection import ReasonCode
from core.config.rules import ConfigStore
from core.context.session import PosSession
from core.errors import PosError
from core.feature_flags.provider import FeatureFlagProvider
from core.primitives.wire import to_jsonable
from core.resilience.breaker import SessionCircuitBreaker
from core.rpc.contracts import RemoteResult
from core.store.protocol import DataStore
from core.time.clock import Clock

logger = logging.getLogger("pos.rpc")


@dataclass(frozen=True)
class ProcedureContext:
    """Everything a procedure handler may touch."""

    store: DataStore
    session: PosSession
    clock: Clock
    config: ConfigStore
    flags: Optional[FeatureFlagProvider]
    audit: AuditTrail


ProcedureHandler = Callable[[ProcedureContext, Dict[str, Any]], Dict[str, Any]]


class ProcedureHost:
    def __init__(
        self,
        *,
        store: DataStore,
        clock: Clock,
        config: ConfigStore,
        flags: Optional[FeatureFlagProvider] = None,
    ):
        self._store = store
        self._clock = clock
        self._config = config
        self._flags = flags
        self._handlers: Dict[str, ProcedureHandler] = {}
        self._breakers: Dict[PosSession, SessionCircuitBreaker] = {}
        self._breakers_lock = threading.Lock()

    def register(self, name: str, handler: ProcedureHandler) -> None:
        if not name:
            raise ValueError("Procedure name must be non-empty.")
        if name in self._handlers:
            raise ValueError(f"Procedure '{name}' is already registered.")
        self._handlers[name] = handler

    def register_all(self, handlers: Mapping[str, ProcedureHandler]) -> None:
        for name in sorted(handlers):
            self.register(name, handlers[name])

    def breaker_for(self, session: PosSession) -> SessionCircuitBreaker:
        """The audit breaker shared by every call made under `session`."""
        with self._breakers_lock:
            breaker = self._breakers.get(session)
            if breaker is None:
                breaker = SessionCircuitBreaker("audit")
                self._breakers[session] = breaker
            return breaker

    @property
    def procedure_names(self) -> tuple[str, ...]:
        return tuple(sorted(self._handlers))

    def execute(
        self,
        name: str,
        payload: Mapping[str, Any],
        session: PosSession,
    ) -> RemoteResult:
        handler = self._handlers.get(name)
        if handler is None:
            return RemoteResult.failed({
                "kind": "PosError",
                "code": "UNKNOWN_PROCEDURE",
                "message": f"Procedure '{name}' is not registered.",
            })

        context = ProcedureContext(
            store=self._store,
            session=session,
            clock=self._clock,
            config=self._config,
            flags=self._flags,
            audit=AuditTrail(
                store=self._store,
                session=session,
                clock=self._clock,
                breaker=self.breaker_for(session),
            ),
        )

        try:
            with self._store.transaction():
                data = handler(context, dict(payload))
        except PosError as exc:
            logger.info(f"Procedure {name} rejected: {exc.code}: {exc.message}")
            return RemoteResult.failed(exc.to_dict())
        except Exception as exc:
            logger.error(
                f"Procedure {name} failed unexpectedly for user "
                f"{session.user_id}: {exc}",
                exc_info=True,
            )
            return RemoteResult.failed({
                "kind": "PosError",
                "code": ReasonCode.UNEXPECTED,
                "message": "Unexpected server error.",
            })

        return RemoteResult.ok(to_jsonable(data or {}))


class InProcessProcedureClient:
    """RemoteProcedureClient bound to one caller session."""

    def __init__(self, host: ProcedureHost, session: PosSession):
        self._host = host
        self._session = session

    def invoke(self, name: str, payload: Mapping[str, Any]) -> RemoteResult:
        return self._host.execute(name, to_jsonable(dict(payload)), self._session)
