"""Retention service for expiring persisted telemetry.

This service implements the core retention logic:
- Sweep expired entries out of the temporary cache (manual, opportunistic,
  periodic)
- Compute the deletion due-date for HISTORICAL-mode data
- Purge historical records past their tenant's retention window

Sweeps are safe to run concurrently with reads, writes and other sweeps: a row
is removed only if the expiry predicate holds when the store executes the
delete. Sweep failures are logged and never propagate.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from audit.service import AuditAction, AuditTrail
from cache.service import EphemeralCache
from models.base import utc_now
from privacy.errors import SweepFailed
from privacy.policy import PolicyResolver
from privacy.ports import DurableStorePort, TenantLookupPort
from privacy.schemas import PrivacyPolicy, StorageMode
from .schemas import PurgeStatistics, SweepResult

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Removes expired data from the temporary cache and the durable store.

    Opportunistic sweeps run on a single background worker and are coalesced:
    while one is queued or running, further triggers are dropped.
    """

    def __init__(
        self,
        cache: EphemeralCache,
        audit: AuditTrail,
        resolver: PolicyResolver,
        durable_store: Optional[DurableStorePort] = None,
        lookup: Optional[TenantLookupPort] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.cache = cache
        self.audit = audit
        self.resolver = resolver
        self.durable_store = durable_store
        self.lookup = lookup
        self.clock = clock

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-sweep")
        self._lock = threading.Lock()
        self._pending: Optional[Future] = None

    def sweep_expired(self, trigger: str = "manual") -> int:
        """Delete all cache entries whose expiry has passed.

        Returns:
            Number of rows removed (0 if the store was unavailable)
        """
        return self.sweep(trigger).deleted_count

    def sweep(self, trigger: str = "manual") -> SweepResult:
        swept_at = self.clock()
        try:
            deleted = self._purge_cache()
        except SweepFailed as e:
            logger.error(
                f"Cache sweep failed, will retry on next tick: {e}",
                exc_info=True,
                extra={"trigger": trigger},
            )
            return SweepResult(trigger=trigger, deleted_count=0, failed=True, swept_at=swept_at)

        if deleted > 0:
            logger.info(
                f"Cache cleanup: removed {deleted} expired entries",
                extra={"trigger": trigger, "deleted": deleted},
            )
            self.audit.log(None, AuditAction.CACHE_SWEPT, {"deleted": deleted, "trigger": trigger})

        return SweepResult(trigger=trigger, deleted_count=deleted, swept_at=swept_at)

    def _purge_cache(self) -> int:
        try:
            return self.cache.purge_expired()
        except Exception as e:
            raise SweepFailed(f"Cache store unavailable: {e}") from e

    def trigger_opportunistic(self) -> None:
        """Queue a background sweep without waiting for it."""
        with self._lock:
            if self._pending is not None and not self._pending.done():
                return
            try:
                self._pending = self._executor.submit(self.sweep, "opportunistic")
            except RuntimeError:
                # Executor already shut down during process exit
                logger.debug("Opportunistic sweep skipped, sweeper is shut down")

    def schedule_historical_deletion(
        self, policy: PrivacyPolicy, record_audit: bool = False
    ) -> Optional[datetime]:
        """Compute when a tenant's historical data becomes due for deletion.

        The scheduled purge job (retention.purge_historical) performs the
        deletion; this only computes and logs the due-date. With record_audit
        the decision is also written to the audit trail.

        Returns:
            now + retention_days, or None when no deletion applies
        """
        if (
            policy.effective_storage_mode != StorageMode.HISTORICAL
            or not policy.auto_delete
            or policy.retention_days <= 0
        ):
            return None

        due_at = self.clock() + timedelta(days=policy.retention_days)
        logger.info(
            f"Scheduled historical data deletion for tenant {policy.tenant_id} on {due_at.isoformat()}",
            extra={"tenant_id": str(policy.tenant_id), "retention_days": policy.retention_days},
        )
        if record_audit:
            self.audit.log(
                policy.tenant_id,
                AuditAction.HISTORICAL_DELETION_SCHEDULED,
                {"due_at": due_at.isoformat(), "retention_days": policy.retention_days},
            )
        return due_at

    def purge_historical(self, tenant_id: UUID) -> int:
        """Delete a tenant's historical records older than its retention window.

        Tenants whose policy cannot be resolved get the strict default
        (retention_days=0) and are skipped, so a lookup outage never wipes data.

        Raises:
            Exception: Durable store errors propagate to the job runner
        """
        if self.durable_store is None:
            return 0

        policy = self.resolver.resolve(tenant_id)
        if not policy.auto_delete or policy.retention_days <= 0:
            return 0

        cutoff = self.clock() - timedelta(days=policy.retention_days)
        deleted = self.durable_store.delete_records_older_than(cutoff, tenant_id)

        if deleted > 0:
            self.audit.log(
                tenant_id,
                AuditAction.HISTORICAL_PURGED,
                {"deleted": deleted, "cutoff": cutoff.isoformat(), "retention_days": policy.retention_days},
            )
        return deleted

    def run_historical_purge(self, tenant_ids: Optional[List[UUID]] = None) -> PurgeStatistics:
        """Purge historical data across tenants.

        Errors in one tenant do not block processing of others.
        """
        start_time = self.clock()
        logger.info("Starting historical purge job")

        if tenant_ids is None:
            tenant_ids = self.lookup.list_tenant_ids() if self.lookup is not None else []

        records_deleted = 0
        tenants_processed = 0
        store_errors = 0

        for tenant_id in tenant_ids:
            try:
                records_deleted += self.purge_historical(tenant_id)
                tenants_processed += 1
            except Exception as e:
                logger.error(
                    f"Failed to purge historical data for tenant {tenant_id}",
                    exc_info=True,
                    extra={"tenant_id": str(tenant_id), "error": str(e)},
                )
                store_errors += 1

        end_time = self.clock()
        statistics = PurgeStatistics(
            job_started_at=start_time,
            job_completed_at=end_time,
            duration_seconds=max((end_time - start_time).total_seconds(), 0.0),
            records_deleted=records_deleted,
            tenants_processed=tenants_processed,
            store_errors=store_errors,
        )

        logger.info(
            "Historical purge job completed",
            extra={
                "records_deleted": records_deleted,
                "tenants_processed": tenants_processed,
                "has_errors": statistics.has_errors,
            },
        )
        if statistics.is_anomaly:
            logger.warning(
                f"Historical purge anomaly detected: {records_deleted} records deleted",
                extra={"statistics": statistics.model_dump(mode="json")},
            )

        return statistics

    def close(self) -> None:
        with self._lock:
            self._executor.shutdown(wait=False, cancel_futures=True)
