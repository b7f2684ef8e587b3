"""Exceptions raised by the privacy engine.

Only DecryptionFailed, StorageModeNotAvailable and EncryptionKeyError ever
reach callers. PolicyResolutionFailed and SweepFailed are absorbed by the
component that raises them. A denied storage request is a normal outcome and
is reported through return values, not exceptions.
"""


class PrivacyEngineError(Exception):
    """Base class for privacy engine errors."""
    pass


class PolicyResolutionFailed(PrivacyEngineError):
    """Tenant/plan lookup failed, timed out, or returned an unusable record."""
    pass


class DecryptionFailed(PrivacyEngineError):
    """Envelope failed authentication or is malformed.

    Indicates data corruption or tampering; never to be treated as a cache miss.
    """
    pass


class EncryptionKeyError(PrivacyEngineError):
    """Encryption master key is missing or unusable."""
    pass


class SweepFailed(PrivacyEngineError):
    """Underlying store was unavailable during an expiry sweep."""
    pass


class StorageModeNotAvailable(PrivacyEngineError):
    """Requested storage mode is not available on the tenant's plan tier."""

    def __init__(self, plan_tier: str, storage_mode: str):
        self.plan_tier = plan_tier
        self.storage_mode = storage_mode
        super().__init__(
            f"Storage mode {storage_mode} is not available on plan {plan_tier}"
        )


class TenantNotFound(PrivacyEngineError):
    """Tenant does not exist (raised by write paths only)."""
    pass
