"""Pydantic schemas for privacy audit log endpoints.

Audit logs are read-only (no create/update/delete operations).
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime
from typing import Optional


class AuditLogResponse(BaseModel):
    """Response schema for privacy audit log entries."""

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "tenant_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                "action": "CONSENT_UPDATED",
                "details": {"consent_given": True, "storage_mode": "TEMPORARY"},
                "created_at": "2025-01-04T12:00:00Z",
            }
        },
    )

    id: UUID = Field(..., description="Audit log entry unique identifier")
    tenant_id: Optional[UUID] = Field(None, description="Tenant ID (None for system-wide events)")
    action: str = Field(..., description="Event action (CONSENT_UPDATED, STORAGE_DENIED, etc.)")
    details: Optional[dict] = Field(None, validation_alias=AliasChoices("details_json", "details"), description="Additional context")
    created_at: datetime = Field(..., description="Event timestamp")


class AuditLogListResponse(BaseModel):
    """Response schema for audit log queries.

    Includes pagination metadata.
    """
    entries: list[AuditLogResponse] = Field(..., description="List of audit log entries")
    total: int = Field(..., description="Total number of entries matching filters")
    page: int = Field(..., description="Current page number")
    per_page: int = Field(..., description="Entries per page")
