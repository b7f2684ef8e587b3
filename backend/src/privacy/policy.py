"""Privacy policy resolution.

Combines a tenant's stored consent/preference record with its plan tier into
the effective PrivacyPolicy. Resolution never fails open: any lookup error,
timeout, missing tenant or unusable record yields the strictest policy.
"""

import logging
from typing import Optional
from uuid import UUID

from .errors import PolicyResolutionFailed
from .ports import TenantLookupPort
from .schemas import PlanTier, PrivacyPolicy, StorageMode, TenantPrivacyRecord
from .timeouts import BoundedCaller

logger = logging.getLogger(__name__)


def policy_from_record(tenant_id: UUID, record: TenantPrivacyRecord) -> PrivacyPolicy:
    """Build the policy for a stored record.

    Raises:
        PolicyResolutionFailed: If the record holds unknown plan/mode values
    """
    try:
        return PrivacyPolicy(
            tenant_id=tenant_id,
            plan_tier=PlanTier(record.plan_tier),
            storage_mode=StorageMode(record.storage_mode),
            retention_days=record.retention_days,
            encrypt_data=record.encrypt_data,
            auto_delete=record.auto_delete,
            consent_given=record.consent_given,
            consent_date=record.consent_date if record.consent_given else None,
        )
    except ValueError as e:
        # pydantic.ValidationError is a ValueError subclass
        raise PolicyResolutionFailed(f"Invalid privacy record: {e}") from e


class PolicyResolver:
    """Computes the effective privacy policy for a tenant.

    Policies are recomputed on every call; nothing is memoized across
    requests, so a consent change takes effect immediately.
    """

    def __init__(self, lookup: TenantLookupPort, caller: BoundedCaller):
        """
        Args:
            lookup: Tenant/plan lookup adapter
            caller: Runs the lookup under the configured timeout
        """
        self.lookup = lookup
        self.caller = caller

    def resolve(self, tenant_id: UUID) -> PrivacyPolicy:
        """Resolve the effective policy for a tenant.

        Args:
            tenant_id: Tenant UUID

        Returns:
            PrivacyPolicy; the strict default if anything goes wrong
        """
        try:
            record = self._fetch(tenant_id)
            if record is None:
                raise PolicyResolutionFailed(f"Tenant {tenant_id} not found")
            return policy_from_record(tenant_id, record)
        except PolicyResolutionFailed as e:
            logger.warning(
                f"Privacy policy resolution failed, applying strict defaults: {e}",
                extra={"tenant_id": str(tenant_id)},
            )
        except Exception as e:
            logger.error(
                "Unexpected error resolving privacy policy, applying strict defaults",
                exc_info=True,
                extra={"tenant_id": str(tenant_id), "error": str(e)},
            )
        return PrivacyPolicy.strict_default(tenant_id)

    def _fetch(self, tenant_id: UUID) -> Optional[TenantPrivacyRecord]:
        try:
            return self.caller.call(self.lookup.get_tenant_plan_and_consent, tenant_id)
        except TimeoutError as e:
            raise PolicyResolutionFailed(f"Tenant lookup timed out: {e}") from e
        except Exception as e:
            raise PolicyResolutionFailed(f"Tenant lookup failed: {e}") from e
