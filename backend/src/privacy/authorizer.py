"""Storage authorization - may telemetry of a category be persisted for a tenant?"""

import logging
import random
from typing import Callable, Optional, Tuple, Union
from uuid import UUID

from audit.service import AuditAction, AuditTrail
from .policy import PolicyResolver
from .schemas import DataCategory, PrivacyPolicy, StorageDecision, StorageMode

logger = logging.getLogger(__name__)

PLAN_RESTRICTED_REASON = "historical_not_available_on_plan"


def evaluate_policy(policy: PrivacyPolicy) -> Tuple[bool, str]:
    """Apply the storage rules, in order, to a resolved policy.

    1. No consent, or MEMORY_ONLY: deny
    2. TEMPORARY: allow
    3. HISTORICAL: allow only on PREMIUM/ENTERPRISE plans

    Returns:
        (allowed, reason)
    """
    if not policy.consent_given:
        return False, "consent_not_given"
    if policy.storage_mode == StorageMode.MEMORY_ONLY:
        return False, "memory_only"
    if policy.storage_mode == StorageMode.TEMPORARY:
        return True, "temporary_storage_allowed"
    if policy.storage_mode == StorageMode.HISTORICAL:
        if policy.historical_eligible:
            return True, "historical_storage_allowed"
        return False, PLAN_RESTRICTED_REASON
    return False, "unknown_storage_mode"


class StorageAuthorizer:
    """Decides whether persistence is currently permitted.

    Performs no writes other than the audit side channel. Grants are always
    audited; denials are sampled because they are the high-volume default.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        audit: AuditTrail,
        denial_sample_rate: float = 0.1,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.resolver = resolver
        self.audit = audit
        self.denial_sample_rate = denial_sample_rate
        self._rng = rng or random.random

    def authorize(self, tenant_id: UUID, category: Union[DataCategory, str]) -> StorageDecision:
        """Resolve the tenant's policy and decide for one data category."""
        try:
            category = DataCategory(category)
            policy = self.resolver.resolve(tenant_id)
            allowed, reason = evaluate_policy(policy)
        except Exception as e:
            logger.error(
                "Error checking data storage permission, denying",
                exc_info=True,
                extra={"tenant_id": str(tenant_id), "category": str(category), "error": str(e)},
            )
            policy = PrivacyPolicy.strict_default(tenant_id)
            allowed, reason = False, "authorization_error"

        decision = StorageDecision(allowed=allowed, policy=policy, reason=reason)
        self._record(tenant_id, category, decision)
        return decision

    def may_store(self, tenant_id: UUID, category: Union[DataCategory, str]) -> bool:
        return self.authorize(tenant_id, category).allowed

    def _record(self, tenant_id: UUID, category, decision: StorageDecision) -> None:
        if not decision.allowed and self._rng() >= self.denial_sample_rate:
            return

        self.audit.log(
            tenant_id,
            AuditAction.STORAGE_GRANTED if decision.allowed else AuditAction.STORAGE_DENIED,
            {
                "category": getattr(category, "value", str(category)),
                "reason": decision.reason,
                "storage_mode": decision.policy.storage_mode.value,
            },
        )
