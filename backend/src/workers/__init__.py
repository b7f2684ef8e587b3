"""Background workers module for Celery task processing.

Per-tenant tasks must accept tenant_id as an explicit parameter (UUID string)
and validate it before processing (see TenantTask).
"""

from .base import (
    celery_app,
    get_worker_engine,
    validate_tenant_id,
    TenantTask,
)

__all__ = [
    "celery_app",
    "get_worker_engine",
    "validate_tenant_id",
    "TenantTask",
]
