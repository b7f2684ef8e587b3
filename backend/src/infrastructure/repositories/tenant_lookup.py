"""Tenant repository backing the privacy policy lookup"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from database import SessionFactory, session_scope
from models.tenant import Tenant
from privacy.errors import TenantNotFound
from privacy.ports import TenantLookupPort
from privacy.schemas import TenantPrivacyRecord
from privacy.timeouts import BoundedCaller


class SqlTenantLookup(TenantLookupPort):
    """Repository for tenant plan and privacy preference reads and writes.

    Each call runs in its own short session so the lookup can be executed on a
    worker thread under a timeout.
    """

    def __init__(self, session_factory: SessionFactory):
        """Initialize repository with a session factory.

        Args:
            session_factory: Callable returning a new SQLAlchemy session
        """
        self.session_factory = session_factory

    def get_tenant_plan_and_consent(self, tenant_id: UUID) -> Optional[TenantPrivacyRecord]:
        with session_scope(self.session_factory) as db:
            tenant = db.get(Tenant, tenant_id)
            if tenant is None:
                return None
            return TenantPrivacyRecord.model_validate(tenant)

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
        with session_scope(self.session_factory) as db:
            tenant = db.get(Tenant, tenant_id, with_for_update=True)
            if tenant is None:
                raise TenantNotFound(f"Tenant {tenant_id} not found")

            tenant.consent_given = consent_given
            tenant.consent_date = consent_date
            if storage_mode is not None:
                tenant.storage_mode = storage_mode
            if retention_days is not None:
                tenant.retention_days = retention_days
            if encrypt_data is not None:
                tenant.encrypt_data = encrypt_data
            if auto_delete is not None:
                tenant.auto_delete = auto_delete

            db.flush()
            return TenantPrivacyRecord.model_validate(tenant)

    def list_tenant_ids(self) -> List[UUID]:
        with session_scope(self.session_factory) as db:
            return list(db.scalars(select(Tenant.id)).all())


class TimeoutTenantLookup(TenantLookupPort):
    """Bounds every call on another tenant lookup by a timeout.

    Raises TimeoutError from any method whose call overruns.
    """

    def __init__(self, inner: TenantLookupPort, caller: BoundedCaller):
        self.inner = inner
        self.caller = caller

    def get_tenant_plan_and_consent(self, tenant_id: UUID) -> Optional[TenantPrivacyRecord]:
        return self.caller.call(self.inner.get_tenant_plan_and_consent, tenant_id)

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
        return self.caller.call(
            self.inner.save_privacy_preferences,
            tenant_id,
            consent_given,
            consent_date,
            storage_mode=storage_mode,
            retention_days=retention_days,
            encrypt_data=encrypt_data,
            auto_delete=auto_delete,
        )

    def list_tenant_ids(self) -> List[UUID]:
        return self.caller.call(self.inner.list_tenant_ids)
