"""Health check utilities.

Checks the components the privacy engine needs to serve requests: the
database backing the cache, audit and tenant tables, the temporary cache
itself and the periodic sweeper.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import text

from cache.service import EphemeralCache
from database import SessionFactory, session_scope
from retention.scheduler import PeriodicSweeper
from .logging_config import get_logger

logger = get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        return {"status": self.status.value, "message": self.message, "latency_ms": self.latency_ms}


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def check_database_health(session_factory: SessionFactory) -> ComponentHealth:
    start = time.perf_counter()
    try:
        with session_scope(session_factory) as db:
            db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return ComponentHealth(status=HealthStatus.UNHEALTHY, message=f"Database error: {e}")

    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Database connection OK",
        latency_ms=_elapsed_ms(start),
    )


def check_cache_health(cache: EphemeralCache) -> ComponentHealth:
    """Reading cache statistics exercises the temp_cache table and its expiry index."""
    start = time.perf_counter()
    try:
        stats = cache.stats()
    except Exception as e:
        logger.error(f"Cache health check failed: {e}", exc_info=True)
        return ComponentHealth(status=HealthStatus.UNHEALTHY, message=f"Cache error: {e}")

    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message=f"{stats.total_live_keys} live entries ({stats.memory_usage})",
        latency_ms=_elapsed_ms(start),
    )


def check_sweeper_health(sweeper: PeriodicSweeper, enabled: bool) -> ComponentHealth:
    """A stopped sweeper degrades service: expired rows pile up but reads stay correct."""
    if not enabled:
        return ComponentHealth(status=HealthStatus.HEALTHY, message="Periodic sweep disabled")
    if sweeper.running:
        return ComponentHealth(status=HealthStatus.HEALTHY, message="Periodic sweep running")
    return ComponentHealth(status=HealthStatus.DEGRADED, message="Periodic sweep not running")


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    statuses = {component.status for component in components.values()}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
