"""FastAPI router for tenant privacy endpoints.

Provides APIs for:
- Viewing and updating a tenant's privacy settings and consent
- Listing the storage modes the tenant's plan offers
- Storage decisions and handing telemetry over for storage
- Data-subject export and delete-all

Authentication is handled upstream; the tenant id travels in the path.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dependencies import get_privacy_service
from .schemas import (
    ConsentUpdate,
    DataCategory,
    PrivacyPolicy,
    PrivacySettingsUpdate,
    StorageModesResponse,
    StoreRequest,
    StoreResult,
    TenantDataExport,
)
from .service import PrivacyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants/{tenant_id}/privacy", tags=["privacy"])


@router.get("", response_model=PrivacyPolicy)
def get_privacy_settings(
    tenant_id: UUID,
    service: PrivacyService = Depends(get_privacy_service),
) -> PrivacyPolicy:
    """Get the tenant's effective privacy policy.

    Unknown tenants get the strict default policy.
    """
    return service.get_policy(tenant_id)


@router.put("", response_model=PrivacyPolicy)
def update_privacy_settings(
    tenant_id: UUID,
    update: PrivacySettingsUpdate,
    service: PrivacyService = Depends(get_privacy_service),
) -> PrivacyPolicy:
    """Update storage preferences without changing consent.

    Raises:
        HTTPException 404: Tenant not found
        HTTPException 422: Storage mode not available on the tenant's plan
    """
    return service.update_settings(
        tenant_id,
        storage_mode=update.storage_mode,
        retention_days=update.retention_days,
        encrypt_data=update.encrypt_data,
        auto_delete=update.auto_delete,
    )


@router.post("/consent", response_model=PrivacyPolicy)
def update_consent(
    tenant_id: UUID,
    update: ConsentUpdate,
    service: PrivacyService = Depends(get_privacy_service),
) -> PrivacyPolicy:
    """Grant or withdraw consent to store data, optionally with preferences.

    Withdrawing consent evicts the tenant's temporarily stored data.
    """
    return service.update_consent(
        tenant_id,
        consent_given=update.consent_given,
        storage_mode=update.storage_mode,
        retention_days=update.retention_days,
        encrypt_data=update.encrypt_data,
        auto_delete=update.auto_delete,
    )


@router.get("/storage-modes", response_model=StorageModesResponse)
def get_storage_modes(
    tenant_id: UUID,
    service: PrivacyService = Depends(get_privacy_service),
) -> StorageModesResponse:
    return service.available_modes(tenant_id)


@router.get("/may-store/{category}")
def may_store(
    tenant_id: UUID,
    category: DataCategory,
    service: PrivacyService = Depends(get_privacy_service),
) -> Dict[str, Any]:
    return {
        "tenant_id": str(tenant_id),
        "category": category.value,
        "may_store": service.may_store(tenant_id, category),
    }


@router.post("/data/{category}", response_model=StoreResult)
def store_data(
    tenant_id: UUID,
    category: DataCategory,
    request: StoreRequest,
    service: PrivacyService = Depends(get_privacy_service),
) -> StoreResult:
    """Persist telemetry if the tenant's policy allows it.

    A refusal is reported as stored=false with a disclosure, not as an error.
    """
    return service.store(
        tenant_id,
        category,
        request.value,
        identifier=request.identifier,
        ttl_minutes=request.ttl_minutes,
    )


@router.get("/data/{category}")
def get_data(
    tenant_id: UUID,
    category: DataCategory,
    identifier: Optional[str] = Query(None, max_length=512),
    service: PrivacyService = Depends(get_privacy_service),
) -> Dict[str, Any]:
    """Read a temporarily stored value.

    Raises:
        HTTPException 404: No live entry for this key
        HTTPException 500 (DATA_CORRUPTED): Stored value failed authentication
    """
    value = service.fetch(tenant_id, category, identifier)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No stored data for this key",
        )
    return {"category": category.value, "identifier": identifier, "value": value}


@router.delete("/data/{category}", status_code=status.HTTP_204_NO_CONTENT)
def delete_data(
    tenant_id: UUID,
    category: DataCategory,
    identifier: Optional[str] = Query(None, max_length=512),
    service: PrivacyService = Depends(get_privacy_service),
) -> None:
    if not service.delete_entry(tenant_id, category, identifier):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No stored data for this key",
        )


@router.get("/export", response_model=TenantDataExport)
def export_data(
    tenant_id: UUID,
    service: PrivacyService = Depends(get_privacy_service),
) -> TenantDataExport:
    """Export everything stored about the tenant."""
    return service.export_tenant_data(tenant_id)


@router.delete("/data")
def delete_all_data(
    tenant_id: UUID,
    service: PrivacyService = Depends(get_privacy_service),
) -> Dict[str, Any]:
    """Delete all stored operational data of the tenant.

    The tenant's account and privacy preferences are kept.
    """
    if not service.delete_all_tenant_data(tenant_id):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete tenant data",
        )
    return {"success": True, "message": "All stored data deleted"}
