"""Privacy service - storage decisions, consent updates and data-subject requests.

Entry point for the rest of the dashboard backend. Callers ask whether telemetry
may be persisted, hand it over for storage, update a tenant's consent, and
export or erase everything held about a tenant.

A refused store is a normal outcome: store() returns StoreResult(stored=False)
with a disclosure, and the feature keeps working on real-time data only.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Union
from uuid import UUID

from audit.service import AuditAction, AuditTrail
from cache.keys import make_key
from cache.schemas import CacheStats, CleanupResult
from cache.service import EphemeralCache
from infrastructure.encryption import EncryptedEnvelope, PayloadEncryption, is_empty_payload
from models.base import utc_now
from retention.service import RetentionSweeper
from .authorizer import PLAN_RESTRICTED_REASON, StorageAuthorizer
from .errors import StorageModeNotAvailable, TenantNotFound
from .policy import PolicyResolver, policy_from_record
from .ports import DurableStorePort, TenantLookupPort
from .schemas import (
    DataCategory,
    PlanTier,
    PrivacyPolicy,
    StorageMode,
    StorageModesResponse,
    StoreResult,
    TenantDataExport,
    TenantPrivacyRecord,
    available_storage_modes,
    is_storage_mode_available,
)

logger = logging.getLogger(__name__)

REAL_TIME_ONLY_DISCLOSURE = (
    "Data is not being stored. This feature shows real-time data only; "
    "enable temporary storage in your privacy settings to keep recent history."
)

PLAN_RESTRICTED_DISCLOSURE = (
    "Data is not being stored. Historical storage is not included in your current "
    "plan; this feature shows real-time data only until you upgrade or switch to "
    "temporary storage."
)


class PrivacyService:
    """Facade over the privacy engine components."""

    def __init__(
        self,
        resolver: PolicyResolver,
        authorizer: StorageAuthorizer,
        cache: EphemeralCache,
        sweeper: RetentionSweeper,
        audit: AuditTrail,
        codec: PayloadEncryption,
        lookup: TenantLookupPort,
        durable_store: Optional[DurableStorePort] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.resolver = resolver
        self.authorizer = authorizer
        self.cache = cache
        self.sweeper = sweeper
        self.audit = audit
        self.codec = codec
        self.lookup = lookup
        self.durable_store = durable_store
        self.clock = clock

    # Storage decisions

    def get_policy(self, tenant_id: UUID) -> PrivacyPolicy:
        return self.resolver.resolve(tenant_id)

    def available_modes(self, tenant_id: UUID) -> StorageModesResponse:
        policy = self.resolver.resolve(tenant_id)
        return StorageModesResponse(
            plan_tier=policy.plan_tier,
            available_modes=available_storage_modes(policy.plan_tier),
        )

    def may_store(self, tenant_id: UUID, category: Union[DataCategory, str]) -> bool:
        return self.authorizer.may_store(tenant_id, category)

    def store(
        self,
        tenant_id: UUID,
        category: Union[DataCategory, str],
        value: Any,
        identifier: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
    ) -> StoreResult:
        """Persist telemetry if the tenant's policy allows it.

        TEMPORARY mode writes to the ephemeral cache; HISTORICAL mode writes to
        the durable store. Values are encrypted when the policy says so.

        Raises:
            ValueError: If ttl_minutes is not positive
            DecryptionFailed, SQLAlchemyError, TimeoutError: Store failures
                propagate to the caller
        """
        category = DataCategory(category)
        decision = self.authorizer.authorize(tenant_id, category)
        policy = decision.policy

        if not decision.allowed:
            if decision.reason == PLAN_RESTRICTED_REASON:
                return StoreResult(
                    stored=False,
                    storage_mode=policy.storage_mode,
                    disclosure=PLAN_RESTRICTED_DISCLOSURE,
                )
            return StoreResult(
                stored=False,
                storage_mode=policy.effective_storage_mode,
                disclosure=REAL_TIME_ONLY_DISCLOSURE,
            )

        key = make_key(tenant_id, category.value, identifier)

        if policy.storage_mode == StorageMode.HISTORICAL and self.durable_store is not None:
            payload = value
            if policy.encrypt_data:
                payload = self.codec.encrypt(value, context=key)
            encrypted = isinstance(payload, EncryptedEnvelope)
            if encrypted:
                payload = payload.to_dict()

            self.durable_store.upsert_record(category.value, key, payload, tenant_id)
            return StoreResult(
                stored=True,
                storage_mode=StorageMode.HISTORICAL,
                encrypted=encrypted,
                key=key,
                deletion_due_at=self.sweeper.schedule_historical_deletion(policy),
            )

        # HISTORICAL without a durable store configured degrades to the cache
        expires_at = self.cache.set(
            key,
            value,
            ttl_minutes,
            encrypt=policy.encrypt_data,
            tenant_id=tenant_id,
            category=category.value,
        )
        return StoreResult(
            stored=True,
            storage_mode=StorageMode.TEMPORARY,
            encrypted=policy.encrypt_data and not is_empty_payload(value),
            key=key,
            expires_at=expires_at,
        )

    def fetch(
        self,
        tenant_id: UUID,
        category: Union[DataCategory, str],
        identifier: Optional[str] = None,
    ) -> Any:
        """Read a live cached value, or None on a miss.

        Raises:
            DecryptionFailed: If the stored envelope fails authentication
        """
        return self.cache.get_tenant_data(tenant_id, DataCategory(category).value, identifier)

    def delete_entry(
        self,
        tenant_id: UUID,
        category: Union[DataCategory, str],
        identifier: Optional[str] = None,
    ) -> bool:
        category = DataCategory(category)
        deleted = self.cache.delete(make_key(tenant_id, category.value, identifier))
        if deleted:
            self.audit.log(
                tenant_id,
                AuditAction.CACHE_ENTRY_DELETED,
                {"category": category.value, "identifier": identifier},
            )
        return deleted

    # Consent

    def update_consent(
        self,
        tenant_id: UUID,
        consent_given: bool,
        storage_mode: Optional[Union[StorageMode, str]] = None,
        retention_days: Optional[int] = None,
        encrypt_data: Optional[bool] = None,
        auto_delete: Optional[bool] = None,
    ) -> PrivacyPolicy:
        """Record a consent/preference change and return the new policy.

        consent_date is stamped when consent is granted, kept while it stays
        granted, and cleared on withdrawal. Withdrawing
        consent, or switching to MEMORY_ONLY, evicts the tenant's cached data.

        Raises:
            TenantNotFound: If the tenant does not exist
            StorageModeNotAvailable: If the plan does not offer storage_mode;
                nothing is written in that case
        """
        record = self.lookup.get_tenant_plan_and_consent(tenant_id)
        if record is None:
            raise TenantNotFound(f"Tenant {tenant_id} not found")

        if storage_mode is not None:
            storage_mode = StorageMode(storage_mode)
            try:
                plan_tier = PlanTier(record.plan_tier)
            except ValueError:
                plan_tier = PlanTier.FREE
            if not is_storage_mode_available(plan_tier, storage_mode):
                logger.info(
                    f"Rejected storage mode {storage_mode.value} for plan {plan_tier.value}",
                    extra={"tenant_id": str(tenant_id)},
                )
                raise StorageModeNotAvailable(plan_tier.value, storage_mode.value)

        saved = self.lookup.save_privacy_preferences(
            tenant_id,
            consent_given=consent_given,
            consent_date=self._consent_date(record, consent_given),
            storage_mode=storage_mode.value if storage_mode is not None else None,
            retention_days=retention_days,
            encrypt_data=encrypt_data,
            auto_delete=auto_delete,
        )
        policy = policy_from_record(tenant_id, saved)

        self.audit.log(
            tenant_id,
            AuditAction.CONSENT_UPDATED,
            {
                "consent_given": policy.consent_given,
                "storage_mode": policy.storage_mode.value,
                "retention_days": policy.retention_days,
                "encrypt_data": policy.encrypt_data,
                "auto_delete": policy.auto_delete,
                "previous_consent_given": record.consent_given,
                "previous_storage_mode": record.storage_mode,
            },
        )
        logger.info(
            f"Privacy preferences updated: consent={policy.consent_given}, mode={policy.storage_mode.value}",
            extra={"tenant_id": str(tenant_id)},
        )

        if policy.effective_storage_mode == StorageMode.MEMORY_ONLY:
            evicted = self.cache.delete_tenant(tenant_id)
            if evicted:
                self.audit.log(
                    tenant_id,
                    AuditAction.CACHE_ENTRY_DELETED,
                    {"deleted": evicted, "reason": "storage_disabled"},
                )

        self.sweeper.schedule_historical_deletion(policy, record_audit=True)
        return policy

    def update_settings(
        self,
        tenant_id: UUID,
        storage_mode: Optional[Union[StorageMode, str]] = None,
        retention_days: Optional[int] = None,
        encrypt_data: Optional[bool] = None,
        auto_delete: Optional[bool] = None,
    ) -> PrivacyPolicy:
        """Change storage preferences while keeping the current consent state."""
        record = self.lookup.get_tenant_plan_and_consent(tenant_id)
        if record is None:
            raise TenantNotFound(f"Tenant {tenant_id} not found")
        return self.update_consent(
            tenant_id,
            consent_given=record.consent_given,
            storage_mode=storage_mode,
            retention_days=retention_days,
            encrypt_data=encrypt_data,
            auto_delete=auto_delete,
        )

    def _consent_date(self, record: TenantPrivacyRecord, consent_given: bool) -> Optional[datetime]:
        if not consent_given:
            return None
        if record.consent_given and record.consent_date is not None:
            return record.consent_date
        return self.clock()

    # Cache administration

    def get_stats(self) -> CacheStats:
        return self.cache.stats()

    def cleanup_now(self) -> CleanupResult:
        result = self.sweeper.sweep("manual")
        return CleanupResult(deleted_count=result.deleted_count, swept_at=result.swept_at)

    def clear_cache(self) -> int:
        deleted = self.cache.clear()
        self.audit.log(None, AuditAction.CACHE_CLEARED, {"deleted": deleted})
        logger.warning(f"Temporary cache cleared: {deleted} entries removed")
        return deleted

    # Data-subject requests

    def export_tenant_data(self, tenant_id: UUID) -> TenantDataExport:
        """Collect everything held about a tenant.

        Raises:
            DecryptionFailed: If a cached entry fails authentication
        """
        policy = self.resolver.resolve(tenant_id)
        entries = self.cache.entries_for_tenant(tenant_id)

        stored_types = {entry["category"] for entry in entries if entry["category"]}
        historical_count = 0
        if self.durable_store is not None:
            for category in DataCategory:
                count = self.durable_store.count_records(tenant_id=tenant_id, category=category.value)
                if count:
                    stored_types.add(category.value)
                    historical_count += count

        export = TenantDataExport(
            tenant_id=tenant_id,
            privacy_settings=policy,
            stored_data_types=sorted(stored_types),
            cached_entries=entries,
            historical_record_count=historical_count,
            export_date=self.clock(),
        )

        self.audit.log(
            tenant_id,
            AuditAction.DATA_EXPORTED,
            {"cached_entries": len(entries), "historical_records": historical_count},
        )
        return export

    def delete_all_tenant_data(self, tenant_id: UUID) -> bool:
        """Erase the tenant's cached and historical telemetry.

        The tenant row and its privacy preferences are kept.

        Returns:
            True on success, False if a store failed
        """
        try:
            cache_deleted = self.cache.delete_tenant(tenant_id)
            historical_deleted = 0
            if self.durable_store is not None:
                historical_deleted = self.durable_store.delete_tenant_records(tenant_id)
        except Exception as e:
            logger.error(
                "Error deleting tenant data",
                exc_info=True,
                extra={"tenant_id": str(tenant_id), "error": str(e)},
            )
            return False

        self.audit.log(
            tenant_id,
            AuditAction.TENANT_DATA_DELETED,
            {"cache_entries_deleted": cache_deleted, "historical_records_deleted": historical_deleted},
        )
        logger.info(
            f"Deleted all stored data for tenant: {cache_deleted} cached, {historical_deleted} historical",
            extra={"tenant_id": str(tenant_id)},
        )
        return True
