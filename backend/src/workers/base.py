"""Celery application and base utilities for background tasks.

This module provides:
- celery_app: the Celery application with the retention beat schedule
- get_worker_engine: the privacy engine of the current worker process
- validate_tenant_id: tenant validation for per-tenant tasks
- TenantTask: base task class that validates tenant_id before running

Task Signature Pattern:
======================

Per-tenant tasks take the tenant id as an explicit keyword argument (UUID
string, JSON serializable) and never derive it from global state:

@shared_task(base=TenantTask, bind=True)
def my_task(self, tenant_id: str) -> Dict[str, Any]:
    tenant_uuid = UUID(tenant_id)  # already validated by TenantTask
    engine = get_worker_engine()
    ...

Enqueue with: my_task.delay(tenant_id=str(tenant_uuid))
"""

import logging
import threading
from typing import Optional
from uuid import UUID

from celery import Celery, Task
from celery.schedules import crontab
from celery.signals import worker_process_shutdown

from config import get_settings
from privacy.engine import PrivacyEngine, build_privacy_engine

logger = logging.getLogger(__name__)

settings = get_settings()

celery_app = Celery(
    "queueguard",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["retention.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    beat_schedule={
        "cache-sweep-hourly": {
            "task": "retention.sweep_cache",
            "schedule": crontab(minute=0),
            "options": {"expires": 1800},
        },
        "historical-purge-daily": {
            "task": "retention.purge_historical",
            "schedule": crontab(hour=2, minute=0),  # 02:00 UTC
            "options": {"expires": 3600},
        },
    },
)

_engine: Optional[PrivacyEngine] = None
_engine_lock = threading.Lock()


def get_worker_engine() -> PrivacyEngine:
    """Return this worker process's privacy engine, building it on first use.

    Workers never start the in-process periodic sweeper; beat schedules the
    sweeps instead.
    """
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = build_privacy_engine(get_settings())
            logger.info("Privacy engine initialized for worker process")
        return _engine


@worker_process_shutdown.connect
def _shutdown_worker_engine(**kwargs) -> None:
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.shutdown()
            _engine = None


def validate_tenant_id(tenant_id: str) -> UUID:
    """Validate that tenant_id is a UUID referencing an existing tenant.

    Raises:
        ValueError: If tenant_id is malformed or the tenant doesn't exist
    """
    try:
        tenant_uuid = UUID(tenant_id)
    except (ValueError, AttributeError, TypeError) as e:
        raise ValueError(f"Invalid tenant_id format '{tenant_id}': {str(e)}")

    if get_worker_engine().lookup.get_tenant_plan_and_consent(tenant_uuid) is None:
        raise ValueError(f"Tenant {tenant_id} does not exist")

    return tenant_uuid


class TenantTask(Task):
    """Base Celery task class with tenant validation.

    Tasks using this base class must receive tenant_id as a keyword argument.
    """

    def __call__(self, *args, **kwargs):
        tenant_id = kwargs.get("tenant_id")

        if not tenant_id:
            raise ValueError(
                "tenant_id parameter is required for per-tenant tasks. "
                "Ensure you pass tenant_id=str(tenant_uuid) when enqueuing the task."
            )

        validate_tenant_id(tenant_id)
        return super().__call__(*args, **kwargs)
