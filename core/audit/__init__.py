"""
POS Core Audit - Public API
==========================
Append-only, best-effort audit trail.
"""

from core.audit.functions import create_audit_entry
from core.audit.models import AuditAction, AuditLogEntry, EntityType
from core.audit.trail import AuditTrail

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "AuditTrail",
    "EntityType",
    "create_audit_entry",
]
