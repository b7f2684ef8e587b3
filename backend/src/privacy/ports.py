"""Privacy engine ports - interfaces to external collaborators.

The engine consumes two collaborators it does not own:
- TenantLookupPort: plan tier and stored consent/preference record per tenant
- DurableStorePort: long-lived storage for HISTORICAL-mode telemetry

Adapters live in infrastructure/repositories. Implementations may block on
I/O; callers bound every call with a timeout.

Architecture: Hexagonal - Port interfaces in the privacy domain
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from .schemas import TenantPrivacyRecord


class TenantLookupPort(ABC):
    """Port interface for tenant plan and privacy preference lookups."""

    @abstractmethod
    def get_tenant_plan_and_consent(self, tenant_id: UUID) -> Optional[TenantPrivacyRecord]:
        """Fetch the tenant's plan tier and stored privacy preferences.

        Args:
            tenant_id: Tenant UUID

        Returns:
            TenantPrivacyRecord, or None if the tenant does not exist

        Raises:
            Any exception on backend failure; the resolver treats it as a
            resolution failure.
        """
        pass

    @abstractmethod
    def save_privacy_preferences(
        self,
        tenant_id: UUID,
        consent_given: bool,
        consent_date: Optional[datetime],
        storage_mode: Optional[str] = None,
        retention_days: Optional[int] = None,
        encrypt_data: Optional[bool] = None,
        auto_delete: Optional[bool] = None,
    ) -> TenantPrivacyRecord:
        """Persist a consent/preference change and return the stored record.

        Fields passed as None are left unchanged (consent_date excepted: it is
        always written).

        Raises:
            TenantNotFound: If the tenant does not exist
        """
        pass

    @abstractmethod
    def list_tenant_ids(self) -> List[UUID]:
        """List every tenant id (used by scheduled retention jobs)."""
        pass


class DurableStorePort(ABC):
    """Port interface for long-term storage of HISTORICAL-mode data."""

    @abstractmethod
    def upsert_record(self, category: str, key: str, payload: Any, tenant_id: UUID) -> None:
        """Insert or replace the record identified by (category, key)."""
        pass

    @abstractmethod
    def delete_records_older_than(self, cutoff: datetime, tenant_id: Optional[UUID] = None) -> int:
        """Delete records created before cutoff, optionally for one tenant.

        Returns:
            Number of records deleted
        """
        pass

    @abstractmethod
    def count_records(self, tenant_id: Optional[UUID] = None, category: Optional[str] = None) -> int:
        pass

    @abstractmethod
    def delete_tenant_records(self, tenant_id: UUID) -> int:
        """Delete every record of a tenant (right to erasure)."""
        pass
