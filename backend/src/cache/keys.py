"""Cache key construction for tenant-scoped telemetry."""

from typing import Optional, Union
from uuid import UUID

KEY_SEPARATOR = ":"


def _escape(part: str) -> str:
    return part.replace("\\", "\\\\").replace(KEY_SEPARATOR, "\\" + KEY_SEPARATOR)


def make_key(
    tenant_id: Union[UUID, str],
    category: str,
    identifier: Optional[str] = None,
) -> str:
    """Build the deterministic cache key for a tenant's resource.

    Format: "{tenant_id}:{category}[:{identifier}]". Separators inside a part
    are escaped, so two different (tenant, category, identifier) tuples can
    never map to the same key and concurrent writers for the same resource
    always converge on one entry.

    Example:
        make_key(tenant_id, "metrics", "orders-queue")
        # "3f0c...:metrics:orders-queue"
    """
    category = getattr(category, "value", category)
    parts = [str(tenant_id), category]
    if identifier:
        parts.append(identifier)
    return KEY_SEPARATOR.join(_escape(part) for part in parts)
