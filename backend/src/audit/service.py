"""Audit trail for privacy-relevant events.

This service provides a centralized interface for creating immutable audit log
entries. Every privacy decision must be logged through this service.

Audit Events:
- CONSENT_UPDATED
- STORAGE_GRANTED, STORAGE_DENIED
- CACHE_ENTRY_DELETED, CACHE_CLEARED, CACHE_SWEPT
- HISTORICAL_DELETION_SCHEDULED, HISTORICAL_PURGED
- DATA_EXPORTED, TENANT_DATA_DELETED

Writing an audit entry is fire-and-forget: a failure to record is reported
through the operational log and never surfaces to the caller.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select

from database import SessionFactory, session_scope
from models.audit_log import PrivacyAuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    CONSENT_UPDATED = "CONSENT_UPDATED"
    STORAGE_GRANTED = "STORAGE_GRANTED"
    STORAGE_DENIED = "STORAGE_DENIED"
    CACHE_ENTRY_DELETED = "CACHE_ENTRY_DELETED"
    CACHE_CLEARED = "CACHE_CLEARED"
    CACHE_SWEPT = "CACHE_SWEPT"
    HISTORICAL_DELETION_SCHEDULED = "HISTORICAL_DELETION_SCHEDULED"
    HISTORICAL_PURGED = "HISTORICAL_PURGED"
    DATA_EXPORTED = "DATA_EXPORTED"
    TENANT_DATA_DELETED = "TENANT_DATA_DELETED"


class AuditTrail:
    """Append-only writer/reader for the privacy audit log."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def log(
        self,
        tenant_id: Optional[UUID],
        action: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Create an audit log entry.

        All parameters are stored as-is. This function does not validate action
        names - callers must use AuditAction values.

        Args:
            tenant_id: Tenant the event concerns (None for system-wide events)
            action: Event action (e.g., "CONSENT_UPDATED")
            details: Additional context as JSON (must not contain telemetry payloads)

        Example:
            audit.log(
                tenant_id=tenant.id,
                action=AuditAction.CONSENT_UPDATED,
                details={"consent_given": True, "storage_mode": "TEMPORARY"},
            )
        """
        try:
            with session_scope(self.session_factory) as db:
                db.add(PrivacyAuditLog(
                    tenant_id=tenant_id,
                    action=action,
                    details_json=details,
                ))
        except Exception as e:
            logger.error(
                f"Failed to record privacy audit event {action}",
                exc_info=True,
                extra={"tenant_id": str(tenant_id) if tenant_id else None, "error": str(e)},
            )

    def list_for_tenant(
        self,
        tenant_id: UUID,
        action: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[PrivacyAuditLog], int]:
        """Query a tenant's audit entries, newest first.

        Returns:
            (entries, total) where total counts all entries matching the filters
        """
        filters = [PrivacyAuditLog.tenant_id == tenant_id]
        if action:
            filters.append(PrivacyAuditLog.action == action)

        with session_scope(self.session_factory) as db:
            total = db.scalar(select(func.count()).select_from(PrivacyAuditLog).where(*filters)) or 0
            entries = db.scalars(
                select(PrivacyAuditLog)
                .where(*filters)
                .order_by(PrivacyAuditLog.created_at.desc())
                .limit(limit)
                .offset(offset)
            ).all()
            return list(entries), total
