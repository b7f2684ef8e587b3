"""Health and readiness endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_privacy_engine
from privacy.engine import PrivacyEngine
from .health import (
    HealthStatus,
    check_cache_health,
    check_database_health,
    check_sweeper_health,
    get_overall_health,
)

router = APIRouter(tags=["Observability"])


@router.get(
    "/health",
    summary="Health check endpoint",
    description="Status of the database, the temporary cache and the periodic sweeper",
)
def health_check(engine: PrivacyEngine = Depends(get_privacy_engine)):
    """Returns 200 unless a component is unhealthy, then 503.

    A degraded sweeper still answers 200: reads filter expired rows regardless.
    """
    components = {
        "database": check_database_health(engine.session_factory),
        "cache": check_cache_health(engine.cache),
        "cache_sweeper": check_sweeper_health(
            engine.periodic_sweeper, engine.settings.CACHE_PERIODIC_SWEEP_ENABLED
        ),
    }
    overall = get_overall_health(components)

    return JSONResponse(
        content={
            "status": overall.value,
            "components": {name: component.to_dict() for name, component in components.items()},
        },
        status_code=503 if overall == HealthStatus.UNHEALTHY else 200,
    )


@router.get(
    "/ready",
    summary="Readiness check endpoint",
    description="Readiness for load balancer and Kubernetes probes",
)
def readiness_check(engine: PrivacyEngine = Depends(get_privacy_engine)):
    database = check_database_health(engine.session_factory)
    if database.status != HealthStatus.HEALTHY:
        return JSONResponse(
            content={"status": "not_ready", "message": database.message},
            status_code=503,
        )
    return {"status": "ready", "message": "Application is ready to serve traffic"}
