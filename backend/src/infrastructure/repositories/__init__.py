"""SQLAlchemy adapters for the privacy engine ports."""

from .tenant_lookup import SqlTenantLookup, TimeoutTenantLookup
from .historical_store import SqlHistoricalStore, TimeoutDurableStore

__all__ = [
    "SqlTenantLookup",
    "TimeoutTenantLookup",
    "SqlHistoricalStore",
    "TimeoutDurableStore",
]
