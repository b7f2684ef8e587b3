"""Construction and lifecycle of the privacy engine.

All components are built once per process and passed around by reference.
FastAPI keeps the engine on app.state; Celery workers build their own.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from audit.service import AuditTrail
from cache.service import EphemeralCache
from config import Settings
from database import SessionFactory, build_engine, build_session_factory
from infrastructure.encryption import PayloadEncryption
from infrastructure.repositories import (
    SqlHistoricalStore,
    SqlTenantLookup,
    TimeoutDurableStore,
    TimeoutTenantLookup,
)
from models.base import utc_now
from retention.scheduler import PeriodicSweeper
from retention.service import RetentionSweeper
from .authorizer import StorageAuthorizer
from .policy import PolicyResolver
from .service import PrivacyService
from .timeouts import BoundedCaller

logger = logging.getLogger(__name__)


@dataclass
class PrivacyEngine:
    """Wired set of privacy engine components."""

    settings: Settings
    session_factory: SessionFactory
    codec: PayloadEncryption
    audit: AuditTrail
    lookup: TimeoutTenantLookup
    durable_store: TimeoutDurableStore
    resolver: PolicyResolver
    authorizer: StorageAuthorizer
    cache: EphemeralCache
    sweeper: RetentionSweeper
    service: PrivacyService
    periodic_sweeper: PeriodicSweeper
    lookup_caller: BoundedCaller
    store_caller: BoundedCaller
    db_engine: Optional[Engine] = None

    def start(self) -> None:
        """Start background sweeping (no-op when disabled in settings)."""
        if self.settings.CACHE_PERIODIC_SWEEP_ENABLED:
            self.periodic_sweeper.start()

    def shutdown(self) -> None:
        self.periodic_sweeper.stop()
        self.sweeper.close()
        self.lookup_caller.close()
        self.store_caller.close()
        if self.db_engine is not None:
            self.db_engine.dispose()
        logger.info("Privacy engine shut down")


def build_privacy_engine(
    settings: Settings,
    session_factory: Optional[SessionFactory] = None,
    clock: Callable[[], datetime] = utc_now,
) -> PrivacyEngine:
    """Wire up the privacy engine.

    Args:
        settings: Application settings
        session_factory: Use this instead of connecting to DATABASE_URL
        clock: Time source shared by cache, sweeper and service

    Raises:
        EncryptionKeyError: If ENCRYPTION_MASTER_KEY is missing or too short
    """
    db_engine = None
    if session_factory is None:
        db_engine = build_engine(settings.DATABASE_URL)
        session_factory = build_session_factory(db_engine)

    codec = PayloadEncryption(settings.ENCRYPTION_MASTER_KEY)
    audit = AuditTrail(session_factory)

    lookup_caller = BoundedCaller(settings.POLICY_LOOKUP_TIMEOUT_SECONDS, name="policy-lookup")
    tenant_store = SqlTenantLookup(session_factory)
    lookup = TimeoutTenantLookup(tenant_store, lookup_caller)
    store_caller = BoundedCaller(settings.DURABLE_STORE_TIMEOUT_SECONDS, name="durable-store")
    durable_store = TimeoutDurableStore(SqlHistoricalStore(session_factory, clock=clock), store_caller)

    resolver = PolicyResolver(tenant_store, lookup_caller)
    authorizer = StorageAuthorizer(resolver, audit, denial_sample_rate=settings.AUDIT_DENIAL_SAMPLE_RATE)
    cache = EphemeralCache(
        session_factory,
        codec,
        default_ttl_minutes=settings.CACHE_DEFAULT_TTL_MINUTES,
        sweep_probability=settings.CACHE_SWEEP_PROBABILITY,
        clock=clock,
    )
    sweeper = RetentionSweeper(cache, audit, resolver, durable_store, lookup, clock=clock)
    cache.attach_sweep_trigger(sweeper.trigger_opportunistic)

    service = PrivacyService(
        resolver=resolver,
        authorizer=authorizer,
        cache=cache,
        sweeper=sweeper,
        audit=audit,
        codec=codec,
        lookup=lookup,
        durable_store=durable_store,
        clock=clock,
    )

    return PrivacyEngine(
        settings=settings,
        session_factory=session_factory,
        codec=codec,
        audit=audit,
        lookup=lookup,
        durable_store=durable_store,
        resolver=resolver,
        authorizer=authorizer,
        cache=cache,
        sweeper=sweeper,
        service=service,
        periodic_sweeper=PeriodicSweeper(sweeper, settings.CACHE_SWEEP_INTERVAL_MINUTES),
        lookup_caller=lookup_caller,
        store_caller=store_caller,
        db_engine=db_engine,
    )
