"""Privacy-governed storage for tenant telemetry.

Decides per tenant and data category whether telemetry may be persisted,
based on consent and plan tier.

Service, engine and router are imported lazily to avoid circular dependencies.
Use: from privacy.engine import build_privacy_engine
"""

from .errors import (
    DecryptionFailed,
    EncryptionKeyError,
    PolicyResolutionFailed,
    PrivacyEngineError,
    StorageModeNotAvailable,
    SweepFailed,
    TenantNotFound,
)
from .schemas import DataCategory, PlanTier, PrivacyPolicy, StorageMode

__all__ = [
    "DecryptionFailed",
    "EncryptionKeyError",
    "PolicyResolutionFailed",
    "PrivacyEngineError",
    "StorageModeNotAvailable",
    "SweepFailed",
    "TenantNotFound",
    "DataCategory",
    "PlanTier",
    "PrivacyPolicy",
    "StorageMode",
]
