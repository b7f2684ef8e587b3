"""Unit tests for expiry sweeps and historical retention.

Tests sweep idempotency, failure absorption, opportunistic coalescing,
deletion due-dates and the scheduled historical purge.
"""

import threading
import time
from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from audit.service import AuditAction, AuditTrail
from cache.service import EphemeralCache
from infrastructure.repositories import TimeoutTenantLookup
from privacy.policy import PolicyResolver
from privacy.schemas import PlanTier, PrivacyPolicy, StorageMode
from privacy.timeouts import BoundedCaller
from retention.scheduler import PeriodicSweeper
from retention.service import RetentionSweeper


def _policy(**overrides) -> PrivacyPolicy:
    values = {
        "tenant_id": uuid4(),
        "plan_tier": PlanTier.ENTERPRISE,
        "storage_mode": StorageMode.HISTORICAL,
        "retention_days": 30,
        "encrypt_data": True,
        "auto_delete": True,
        "consent_given": True,
    }
    values.update(overrides)
    return PrivacyPolicy(**values)


class TestSweepExpired:
    """Test sweep_expired against the real cache."""

    def test_removes_only_expired_entries(self, privacy_engine, clock):
        cache = privacy_engine.cache
        cache.set("old", "v", ttl_minutes=5)
        cache.set("fresh", "v", ttl_minutes=120)
        clock.advance(minutes=6)

        assert privacy_engine.sweeper.sweep_expired() == 1
        assert cache.get("fresh") == "v"

    def test_second_sweep_finds_nothing(self, privacy_engine, clock):
        privacy_engine.cache.set("old", "v", ttl_minutes=5)
        clock.advance(minutes=6)

        assert privacy_engine.sweeper.sweep_expired() == 1
        assert privacy_engine.sweeper.sweep_expired() == 0

    def test_sweep_is_audited(self, clock):
        cache = Mock(spec=EphemeralCache)
        cache.purge_expired.return_value = 4
        audit = Mock(spec=AuditTrail)
        sweeper = RetentionSweeper(cache, audit, Mock(spec=PolicyResolver), clock=clock)

        result = sweeper.sweep("periodic")

        assert result.deleted_count == 4
        assert result.swept_at == clock()
        audit.log.assert_called_once_with(None, AuditAction.CACHE_SWEPT, {"deleted": 4, "trigger": "periodic"})
        sweeper.close()

    def test_empty_sweep_is_not_audited(self, clock):
        cache = Mock(spec=EphemeralCache)
        cache.purge_expired.return_value = 0
        audit = Mock(spec=AuditTrail)
        sweeper = RetentionSweeper(cache, audit, Mock(spec=PolicyResolver), clock=clock)

        sweeper.sweep("periodic")

        audit.log.assert_not_called()
        sweeper.close()

    def test_store_failure_is_absorbed(self, clock):
        cache = Mock(spec=EphemeralCache)
        cache.purge_expired.side_effect = OperationalError("DELETE", {}, Exception("db gone"))
        sweeper = RetentionSweeper(cache, Mock(spec=AuditTrail), Mock(spec=PolicyResolver), clock=clock)

        result = sweeper.sweep("periodic")

        assert result.failed is True
        assert result.deleted_count == 0
        assert sweeper.sweep_expired() == 0
        sweeper.close()


class TestOpportunisticSweep:
    """Test the background, coalescing sweep trigger."""

    def test_runs_in_background(self, clock):
        done = threading.Event()
        cache = Mock(spec=EphemeralCache)
        cache.purge_expired.side_effect = lambda: done.set() or 0
        sweeper = RetentionSweeper(cache, Mock(spec=AuditTrail), Mock(spec=PolicyResolver), clock=clock)

        sweeper.trigger_opportunistic()

        assert done.wait(timeout=5)
        sweeper.close()

    def test_triggers_coalesce_while_sweep_in_flight(self, clock):
        release = threading.Event()
        started = threading.Event()
        calls = []

        def slow_purge():
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return 0

        cache = Mock(spec=EphemeralCache)
        cache.purge_expired.side_effect = slow_purge
        sweeper = RetentionSweeper(cache, Mock(spec=AuditTrail), Mock(spec=PolicyResolver), clock=clock)

        sweeper.trigger_opportunistic()
        assert started.wait(timeout=5)
        sweeper.trigger_opportunistic()
        sweeper.trigger_opportunistic()
        release.set()
        sweeper._pending.result(timeout=5)

        assert len(calls) == 1
        sweeper.close()

    def test_trigger_after_close_is_ignored(self, clock):
        sweeper = RetentionSweeper(Mock(spec=EphemeralCache), Mock(spec=AuditTrail), Mock(spec=PolicyResolver), clock=clock)
        sweeper.close()

        sweeper.trigger_opportunistic()


class TestPeriodicSweeper:
    """Test the in-process periodic sweep thread."""

    def test_sweeps_on_start_and_stops(self):
        swept = threading.Event()
        sweeper = Mock(spec=RetentionSweeper)
        sweeper.sweep.side_effect = lambda trigger: swept.set()

        periodic = PeriodicSweeper(sweeper, interval_minutes=60)
        periodic.start()
        assert swept.wait(timeout=5)
        assert periodic.running

        periodic.stop()

        assert not periodic.running
        sweeper.sweep.assert_called_with("periodic")

    def test_errors_do_not_kill_the_thread(self):
        sweeper = Mock(spec=RetentionSweeper)
        sweeper.sweep.side_effect = RuntimeError("unexpected")

        periodic = PeriodicSweeper(sweeper, interval_minutes=60)
        periodic.start()
        assert periodic.running
        periodic.stop()


class TestScheduleHistoricalDeletion:
    """Test deletion due-date computation."""

    def _sweeper(self, clock, audit=None):
        return RetentionSweeper(
            Mock(spec=EphemeralCache), audit or Mock(spec=AuditTrail), Mock(spec=PolicyResolver), clock=clock
        )

    def test_due_date_is_now_plus_retention(self, clock):
        sweeper = self._sweeper(clock)

        assert sweeper.schedule_historical_deletion(_policy(retention_days=30)) == clock() + timedelta(days=30)
        sweeper.close()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"auto_delete": False},
            {"retention_days": 0},
            {"storage_mode": StorageMode.TEMPORARY},
            {"consent_given": False},
            {"plan_tier": PlanTier.FREE},
        ],
    )
    def test_no_due_date_when_not_applicable(self, clock, overrides):
        sweeper = self._sweeper(clock)

        assert sweeper.schedule_historical_deletion(_policy(**overrides)) is None
        sweeper.close()

    def test_audited_on_request(self, clock):
        audit = Mock(spec=AuditTrail)
        sweeper = self._sweeper(clock, audit)
        policy = _policy()

        sweeper.schedule_historical_deletion(policy)
        audit.log.assert_not_called()

        sweeper.schedule_historical_deletion(policy, record_audit=True)
        assert audit.log.call_args.args[:2] == (policy.tenant_id, AuditAction.HISTORICAL_DELETION_SCHEDULED)
        sweeper.close()


class TestPurgeHistorical:
    """Test age-based purge of historical records."""

    def test_purges_records_older_than_retention(self, privacy_engine, historical_tenant, clock):
        store = privacy_engine.durable_store
        store.upsert_record("metrics", "old", {"v": 1}, historical_tenant)
        clock.advance(days=20)
        store.upsert_record("metrics", "recent", {"v": 2}, historical_tenant)
        clock.advance(days=11)

        assert privacy_engine.sweeper.purge_historical(historical_tenant) == 1
        assert store.count_records(tenant_id=historical_tenant) == 1

    def test_rewritten_record_is_not_purged(self, privacy_engine, historical_tenant, clock):
        """Writing to an existing key restarts its retention window."""
        service = privacy_engine.service
        service.store(historical_tenant, "metrics", {"v": 1}, identifier="q1")
        clock.advance(days=29)
        service.store(historical_tenant, "metrics", {"v": 2}, identifier="q1")
        clock.advance(days=2)

        assert privacy_engine.sweeper.purge_historical(historical_tenant) == 0
        assert privacy_engine.durable_store.count_records(tenant_id=historical_tenant) == 1

    def test_strict_default_never_purges(self, privacy_engine, clock):
        """Unknown tenant resolves to retention_days=0, which skips the purge."""
        orphan = uuid4()
        privacy_engine.durable_store.upsert_record("metrics", "k", {"v": 1}, orphan)
        clock.advance(days=400)

        assert privacy_engine.sweeper.purge_historical(orphan) == 0
        assert privacy_engine.durable_store.count_records(tenant_id=orphan) == 1

    def test_auto_delete_off_keeps_data(self, privacy_engine, make_tenant, clock):
        tenant_id = make_tenant(
            plan_tier="PREMIUM", storage_mode="HISTORICAL", retention_days=1,
            auto_delete=False, consent_given=True,
        )
        privacy_engine.durable_store.upsert_record("logs", "k", {"v": 1}, tenant_id)
        clock.advance(days=5)

        assert privacy_engine.sweeper.purge_historical(tenant_id) == 0

    def test_run_across_tenants_collects_statistics(self, privacy_engine, historical_tenant, free_tenant, clock):
        privacy_engine.durable_store.upsert_record("metrics", "old", {"v": 1}, historical_tenant)
        clock.advance(days=31)

        statistics = privacy_engine.sweeper.run_historical_purge()

        assert statistics.records_deleted == 1
        assert statistics.tenants_processed == 2
        assert statistics.has_errors is False
        assert statistics.is_anomaly is False

    def test_store_error_in_one_tenant_does_not_block_others(self, clock):
        good, bad = uuid4(), uuid4()
        resolver = Mock(spec=PolicyResolver)
        resolver.resolve.side_effect = lambda tenant_id: _policy(tenant_id=tenant_id)
        store = Mock()

        def delete_older(cutoff, tenant_id):
            if tenant_id == bad:
                raise TimeoutError("durable store did not respond")
            return 3

        store.delete_records_older_than.side_effect = delete_older
        sweeper = RetentionSweeper(Mock(spec=EphemeralCache), Mock(spec=AuditTrail), resolver, store, clock=clock)

        statistics = sweeper.run_historical_purge([bad, good])

        assert statistics.records_deleted == 3
        assert statistics.tenants_processed == 1
        assert statistics.store_errors == 1
        sweeper.close()

    def test_slow_tenant_listing_times_out(self, clock):
        """A hung tenant listing fails the run instead of blocking the worker."""
        inner = Mock()
        inner.list_tenant_ids.side_effect = lambda: time.sleep(1.0) or [uuid4()]
        caller = BoundedCaller(0.2, name="test-lookup")
        sweeper = RetentionSweeper(
            Mock(spec=EphemeralCache), Mock(spec=AuditTrail), Mock(spec=PolicyResolver), Mock(),
            lookup=TimeoutTenantLookup(inner, caller), clock=clock,
        )

        started = time.monotonic()
        with pytest.raises(TimeoutError):
            sweeper.run_historical_purge()

        assert time.monotonic() - started < 0.9
        sweeper.close()
        caller.close()
