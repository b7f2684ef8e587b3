"""FastAPI router for temporary cache administration.

Provides admin APIs for:
- Viewing cache statistics
- Manually triggering an expired-entry sweep
- Clearing the cache
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from cache.schemas import CleanupResult
from dependencies import get_privacy_service
from privacy.service import PrivacyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["retention"])


@router.get("/stats")
def get_cache_stats(
    service: PrivacyService = Depends(get_privacy_service),
) -> Dict[str, Any]:
    """Statistics over live (non-expired) entries."""
    stats = service.get_stats()
    return {
        **stats.model_dump(),
        "memory_usage": stats.memory_usage,
    }


@router.post("/cleanup", response_model=CleanupResult)
def trigger_cleanup(
    service: PrivacyService = Depends(get_privacy_service),
) -> CleanupResult:
    """Sweep expired entries now.

    Safe to call repeatedly; a second call finds nothing left to delete.
    """
    result = service.cleanup_now()
    logger.info(f"Manual cache cleanup removed {result.deleted_count} entries")
    return result


@router.delete("")
def clear_cache(
    service: PrivacyService = Depends(get_privacy_service),
) -> Dict[str, Any]:
    return {"deleted_count": service.clear_cache()}
