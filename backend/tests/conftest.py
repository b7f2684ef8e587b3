"""Pytest fixtures for privacy engine testing.

Provides reusable test fixtures for:
- File-backed SQLite database per test (tables created fresh)
- A controllable clock for simulated-time tests
- Fully wired privacy engine and its components
- Test tenants on FREE and PREMIUM plans
- FastAPI test client bound to the test engine

Usage:
    def test_store(privacy_service, consenting_tenant):
        result = privacy_service.store(consenting_tenant, "metrics", {"depth": 3})
        assert result.stored
"""

import sys
import os
from pathlib import Path

# Set environment variables BEFORE any imports to ensure they take effect
os.environ.setdefault("DATABASE_URL", "sqlite:///./queueguard-test.db")
os.environ.setdefault("ENCRYPTION_MASTER_KEY", "test-master-key-for-the-test-suite")
os.environ.setdefault("CACHE_PERIODIC_SWEEP_ENABLED", "false")
os.environ.setdefault("CACHE_SWEEP_PROBABILITY", "0")
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest
from datetime import datetime, timedelta
from typing import Callable, Generator
from uuid import UUID

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

# Import directly from modules (avoid relative import issues)
from config import Settings
from database import build_engine, build_session_factory, session_scope
from models import Base, Tenant
from privacy.engine import PrivacyEngine, build_privacy_engine
from fastapi.testclient import TestClient
from main import create_app


TEST_MASTER_KEY = "test-master-key-for-the-test-suite"


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Fresh file-backed SQLite database with all tables.

    File-backed (not :memory:) so the sweeper and lookup worker threads each
    get their own connection to the same database.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'queueguard.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    return Settings(
        ENCRYPTION_MASTER_KEY=TEST_MASTER_KEY,
        CACHE_DEFAULT_TTL_MINUTES=30,
        CACHE_SWEEP_PROBABILITY=0.0,
        CACHE_PERIODIC_SWEEP_ENABLED=False,
        POLICY_LOOKUP_TIMEOUT_SECONDS=2.0,
        DURABLE_STORE_TIMEOUT_SECONDS=5.0,
        AUDIT_DENIAL_SAMPLE_RATE=1.0,
        LOG_JSON=False,
    )


@pytest.fixture(scope="function")
def privacy_engine(test_settings, session_factory, clock) -> Generator[PrivacyEngine, None, None]:
    engine = build_privacy_engine(test_settings, session_factory=session_factory, clock=clock)
    try:
        yield engine
    finally:
        engine.shutdown()


@pytest.fixture(scope="function")
def privacy_service(privacy_engine):
    return privacy_engine.service


@pytest.fixture(scope="function")
def cache(privacy_engine):
    return privacy_engine.cache


@pytest.fixture(scope="function")
def audit_trail(privacy_engine):
    return privacy_engine.audit


@pytest.fixture(scope="function")
def make_tenant(session_factory) -> Callable[..., UUID]:
    """Factory creating a tenant row and returning its id.

    Usage:
        tenant_id = make_tenant(plan_tier="PREMIUM", consent_given=True)
    """

    def _make(name: str = "Test Tenant", **columns) -> UUID:
        with session_scope(session_factory) as db:
            tenant = Tenant(name=name, **columns)
            db.add(tenant)
            db.flush()
            return tenant.id

    return _make


@pytest.fixture(scope="function")
def free_tenant(make_tenant) -> UUID:
    """FREE-plan tenant with privacy-first defaults (no consent)."""
    return make_tenant(name="Free Tenant", plan_tier="FREE")


@pytest.fixture(scope="function")
def premium_tenant(make_tenant) -> UUID:
    """PREMIUM-plan tenant with privacy-first defaults (no consent)."""
    return make_tenant(name="Premium Tenant", plan_tier="PREMIUM")


@pytest.fixture(scope="function")
def consenting_tenant(make_tenant, clock) -> UUID:
    """FREE-plan tenant that consented to TEMPORARY storage with encryption."""
    return make_tenant(
        name="Consenting Tenant",
        plan_tier="FREE",
        storage_mode="TEMPORARY",
        retention_days=7,
        encrypt_data=True,
        consent_given=True,
        consent_date=clock(),
    )


@pytest.fixture(scope="function")
def historical_tenant(make_tenant, clock) -> UUID:
    """ENTERPRISE-plan tenant in HISTORICAL mode with a 30-day retention window."""
    return make_tenant(
        name="Historical Tenant",
        plan_tier="ENTERPRISE",
        storage_mode="HISTORICAL",
        retention_days=30,
        encrypt_data=True,
        auto_delete=True,
        consent_given=True,
        consent_date=clock(),
    )


@pytest.fixture(scope="function")
def client(test_settings, privacy_engine):
    """Test client for an application bound to the test engine.

    The application lifespan runs on entering the client, so the engine is on
    app.state for every request.
    """
    app = create_app(test_settings, privacy_engine=privacy_engine)
    with TestClient(app) as test_client:
        yield test_client
