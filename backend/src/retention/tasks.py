"""Celery tasks for data retention cleanup.

Tasks:
- sweep_cache_task: Hourly sweep of expired temporary cache entries
- purge_historical_task: Daily purge of historical records past retention (02:00 UTC)
- purge_tenant_historical_task: Manual purge for a single tenant

All tasks are idempotent - running twice in succession finds nothing further
to delete.
"""

import logging
from typing import Any, Dict
from uuid import UUID

from celery import shared_task

from workers.base import TenantTask, get_worker_engine

logger = logging.getLogger(__name__)


@shared_task(name="retention.sweep_cache", bind=True)
def sweep_cache_task(self) -> Dict[str, Any]:
    """Delete expired entries from the temporary cache.

    Store outages are absorbed by the sweeper and reported as failed=True;
    the next scheduled run retries.
    """
    result = get_worker_engine().sweeper.sweep("scheduled")

    return {
        'status': 'failed' if result.failed else 'completed',
        'deleted_count': result.deleted_count,
        'swept_at': result.swept_at.isoformat(),
    }


@shared_task(name="retention.purge_historical", bind=True)
def purge_historical_task(self) -> Dict[str, Any]:
    """Purge historical records older than each tenant's retention window.

    Returns:
        Dict with purge statistics (records_deleted, tenants_processed,
        store_errors, duration_seconds, has_errors, is_anomaly)
    """
    logger.info("Historical purge task started")

    try:
        statistics = get_worker_engine().sweeper.run_historical_purge()
    except Exception as e:
        logger.error(
            "Historical purge task failed",
            exc_info=True,
            extra={"error": str(e)}
        )
        # Return error status but don't raise (allow task to complete)
        return {
            'status': 'failed',
            'error': str(e),
            'records_deleted': 0,
        }

    result = {
        'status': 'completed',
        'job_started_at': statistics.job_started_at.isoformat(),
        'job_completed_at': statistics.job_completed_at.isoformat(),
        'duration_seconds': statistics.duration_seconds,
        'records_deleted': statistics.records_deleted,
        'tenants_processed': statistics.tenants_processed,
        'store_errors': statistics.store_errors,
        'has_errors': statistics.has_errors,
        'is_anomaly': statistics.is_anomaly,
    }
    logger.info("Historical purge task completed", extra=result)
    return result


@shared_task(name="retention.purge_tenant_historical", base=TenantTask, bind=True)
def purge_tenant_historical_task(self, tenant_id: str) -> Dict[str, Any]:
    """Purge historical records of one tenant.

    Args:
        tenant_id: Tenant UUID as string

    Raises:
        ValueError: If tenant_id is invalid or the tenant does not exist
    """
    logger.info(f"Historical purge task started for tenant {tenant_id}")

    deleted = get_worker_engine().sweeper.purge_historical(UUID(tenant_id))

    return {
        'status': 'completed',
        'tenant_id': tenant_id,
        'records_deleted': deleted,
    }
