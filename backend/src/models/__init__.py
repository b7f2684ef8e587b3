"""SQLAlchemy Models for the QueueGuard privacy engine"""

from .base import Base, utc_now
from .tenant import Tenant, PLAN_TIERS, STORAGE_MODES
from .temp_cache import TempCacheEntry
from .audit_log import PrivacyAuditLog
from .historical_record import HistoricalRecord

__all__ = [
    "Base",
    "utc_now",
    "Tenant",
    "PLAN_TIERS",
    "STORAGE_MODES",
    "TempCacheEntry",
    "PrivacyAuditLog",
    "HistoricalRecord",
]
