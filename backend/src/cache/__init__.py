"""Temporary storage for tenant telemetry with per-entry expiry."""

from .keys import make_key
from .schemas import CacheStats, CleanupResult
from .service import EphemeralCache

__all__ = [
    "make_key",
    "CacheStats",
    "CleanupResult",
    "EphemeralCache",
]
