"""Privacy audit log query endpoints.

All endpoints in this router are read-only. Audit logs are immutable and
cannot be created, updated, or deleted through the API.

Tenants can query their audit trail with filtering by:
- Action type (CONSENT_UPDATED, STORAGE_DENIED, etc.)
- Pagination (page, per_page)
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from dependencies import get_audit_trail
from .schemas import AuditLogListResponse, AuditLogResponse
from .service import AuditTrail


router = APIRouter(prefix="/tenants/{tenant_id}/privacy", tags=["Audit Logs"])


@router.get(
    "/audit",
    response_model=AuditLogListResponse,
    summary="Query privacy audit trail",
    description="Query a tenant's privacy audit entries, newest first.",
)
def query_audit_logs(
    tenant_id: UUID,
    audit: AuditTrail = Depends(get_audit_trail),
    action: Optional[str] = Query(
        None,
        description="Filter by action type (e.g., CONSENT_UPDATED)",
    ),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    per_page: int = Query(50, ge=1, le=100, description="Entries per page (max 100)"),
) -> AuditLogListResponse:
    """Query audit logs with filtering and pagination.

    Example:
        GET /tenants/{tenant_id}/privacy/audit?action=CONSENT_UPDATED&page=1&per_page=50
    """
    entries, total = audit.list_for_tenant(
        tenant_id,
        action=action,
        limit=per_page,
        offset=(page - 1) * per_page,
    )

    return AuditLogListResponse(
        entries=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        per_page=per_page,
    )
