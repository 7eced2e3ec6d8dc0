"""
POS Core Audit - Pure Audit Functions
=====================================
Factory functions for audit entries. Pure: they return new
frozen objects, never write anything.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from core.audit.models import AuditAction, AuditLogEntry, EntityType
from core.primitives.wire import to_jsonable


def create_audit_entry(
    user_id: str,
    restaurant_id: str,
    entity_type: EntityType,
    entity_id: str,
    action: AuditAction,
    occurred_at: datetime,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLogEntry:
    """Create an immutable audit entry with JSON-safe details."""
    return AuditLogEntry(
        entry_id=str(uuid.uuid4()),
        user_id=user_id,
        restaurant_id=restaurant_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        created_at=occurred_at,
        details=to_jsonable(details or {}),
    )
