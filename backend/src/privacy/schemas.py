"""Pydantic schemas for privacy policy and storage decisions.

This module defines privacy-related schemas:
- StorageMode / PlanTier / DataCategory: enumerations shared by all components
- PrivacyPolicy: effective policy derived from a tenant's plan and preferences
- TenantPrivacyRecord: raw record returned by the tenant/plan lookup
- StorageDecision / StoreResult: outcomes of the storage decision API
- ConsentUpdate / PrivacySettingsUpdate: request bodies for preference updates
- StoreRequest: request body for handing telemetry over for storage
- TenantDataExport: data-subject export document
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class StorageMode(str, Enum):
    """How long telemetry may be persisted for a tenant."""
    MEMORY_ONLY = "MEMORY_ONLY"  # Default: no persistent storage
    TEMPORARY = "TEMPORARY"  # Short-term storage in the TTL cache
    HISTORICAL = "HISTORICAL"  # Long-term storage (plan-gated)


class PlanTier(str, Enum):
    FREE = "FREE"
    DEVELOPER = "DEVELOPER"
    STARTUP = "STARTUP"
    BUSINESS = "BUSINESS"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class DataCategory(str, Enum):
    """Categories of operational telemetry governed by the engine."""
    METRICS = "metrics"
    MESSAGES = "messages"
    LOGS = "logs"
    CONNECTIONS = "connections"
    ALERTS = "alerts"


HISTORICAL_PLAN_TIERS = frozenset({PlanTier.PREMIUM, PlanTier.ENTERPRISE})


def available_storage_modes(plan_tier: PlanTier) -> List[StorageMode]:
    """Storage modes a plan tier may configure.

    Every plan may keep data in memory only or, with consent, temporarily.
    Only premium and enterprise plans may keep historical data.
    """
    modes = [StorageMode.MEMORY_ONLY, StorageMode.TEMPORARY]
    if plan_tier in HISTORICAL_PLAN_TIERS:
        modes.append(StorageMode.HISTORICAL)
    return modes


def is_storage_mode_available(plan_tier: PlanTier, storage_mode: StorageMode) -> bool:
    return storage_mode in available_storage_modes(plan_tier)


class TenantPrivacyRecord(BaseModel):
    """Raw plan and preference record as stored for a tenant."""

    model_config = ConfigDict(from_attributes=True)

    plan_tier: str
    storage_mode: str
    retention_days: int
    encrypt_data: bool
    auto_delete: bool
    consent_given: bool
    consent_date: Optional[datetime] = None


class PrivacyPolicy(BaseModel):
    """Effective privacy policy for a tenant.

    Derived on every query; never stored as its own row.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: UUID
    plan_tier: PlanTier
    storage_mode: StorageMode
    retention_days: int = Field(ge=0)
    encrypt_data: bool
    auto_delete: bool
    consent_given: bool
    consent_date: Optional[datetime] = None

    @classmethod
    def strict_default(cls, tenant_id: UUID) -> "PrivacyPolicy":
        """Strictest possible policy, used whenever resolution fails."""
        return cls(
            tenant_id=tenant_id,
            plan_tier=PlanTier.FREE,
            storage_mode=StorageMode.MEMORY_ONLY,
            retention_days=0,
            encrypt_data=True,
            auto_delete=True,
            consent_given=False,
            consent_date=None,
        )

    @property
    def historical_eligible(self) -> bool:
        return self.plan_tier in HISTORICAL_PLAN_TIERS

    @property
    def effective_storage_mode(self) -> StorageMode:
        """Storage mode actually in force once consent and plan are applied."""
        if not self.consent_given:
            return StorageMode.MEMORY_ONLY
        if self.storage_mode == StorageMode.HISTORICAL and not self.historical_eligible:
            return StorageMode.TEMPORARY
        return self.storage_mode


class StorageDecision(BaseModel):
    """Result of an authorization check, with the policy it was based on."""

    allowed: bool
    policy: PrivacyPolicy
    reason: str


class StoreResult(BaseModel):
    """Outcome of a store request.

    stored=False is the normal outcome for tenants without consent; the
    feature then runs real-time only and shows the disclosure to the user.
    """

    stored: bool
    storage_mode: StorageMode
    encrypted: bool = False
    key: Optional[str] = None
    expires_at: Optional[datetime] = None
    deletion_due_at: Optional[datetime] = None
    disclosure: Optional[str] = None


class ConsentUpdate(BaseModel):
    """Consent/preference update submitted from the settings surface."""

    consent_given: bool
    storage_mode: Optional[StorageMode] = None
    retention_days: Optional[int] = Field(
        default=None,
        ge=0,
        le=3650,
        description="Retention period in days for persisted data (0-3650)",
    )
    encrypt_data: Optional[bool] = None
    auto_delete: Optional[bool] = None


class PrivacySettingsUpdate(BaseModel):
    """Preference change that leaves the consent state as it is."""

    storage_mode: Optional[StorageMode] = None
    retention_days: Optional[int] = Field(default=None, ge=0, le=3650)
    encrypt_data: Optional[bool] = None
    auto_delete: Optional[bool] = None


class StoreRequest(BaseModel):
    """Telemetry handed over for storage."""

    value: Any
    identifier: Optional[str] = Field(default=None, max_length=512)
    ttl_minutes: Optional[int] = Field(default=None, gt=0, le=10080)


class StorageModesResponse(BaseModel):
    plan_tier: PlanTier
    available_modes: List[StorageMode]


class TenantDataExport(BaseModel):
    """Everything the engine holds about a tenant, for data-subject requests."""

    tenant_id: UUID
    privacy_settings: PrivacyPolicy
    stored_data_types: List[str]
    cached_entries: List[Dict[str, Any]]
    historical_record_count: int
    export_date: datetime
    note: str = (
        "This export includes all data we store about you. Most operational "
        "data is accessed in real-time and not stored."
    )
