"""Unit tests for the Celery retention tasks.

Tasks are called synchronously against the test engine.
"""

from unittest.mock import Mock
from uuid import uuid4

import pytest

import workers.base
from retention.tasks import purge_historical_task, purge_tenant_historical_task, sweep_cache_task
from workers.base import celery_app, validate_tenant_id


@pytest.fixture
def worker_engine(privacy_engine, monkeypatch):
    monkeypatch.setattr(workers.base, "_engine", privacy_engine)
    return privacy_engine


class TestSweepCacheTask:

    def test_reports_deleted_count(self, worker_engine, clock):
        worker_engine.cache.set("expired", "v", ttl_minutes=1)
        clock.advance(minutes=2)

        result = sweep_cache_task()

        assert result["status"] == "completed"
        assert result["deleted_count"] == 1
        assert sweep_cache_task()["deleted_count"] == 0

    def test_store_outage_reported_as_failed(self, worker_engine, monkeypatch):
        monkeypatch.setattr(worker_engine.cache, "purge_expired", Mock(side_effect=RuntimeError("down")))

        result = sweep_cache_task()

        assert result["status"] == "failed"
        assert result["deleted_count"] == 0


class TestPurgeHistoricalTask:

    def test_purges_across_tenants(self, worker_engine, historical_tenant, clock):
        worker_engine.durable_store.upsert_record("metrics", "old", {"v": 1}, historical_tenant)
        clock.advance(days=31)

        result = purge_historical_task()

        assert result["status"] == "completed"
        assert result["records_deleted"] == 1
        assert result["has_errors"] is False

    def test_job_failure_returns_failed_status(self, worker_engine, monkeypatch):
        monkeypatch.setattr(
            worker_engine.sweeper, "run_historical_purge", Mock(side_effect=RuntimeError("lookup down"))
        )

        result = purge_historical_task()

        assert result["status"] == "failed"
        assert result["records_deleted"] == 0

    def test_single_tenant(self, worker_engine, historical_tenant, clock):
        worker_engine.durable_store.upsert_record("logs", "old", {"v": 1}, historical_tenant)
        clock.advance(days=31)

        result = purge_tenant_historical_task(tenant_id=str(historical_tenant))

        assert result == {"status": "completed", "tenant_id": str(historical_tenant), "records_deleted": 1}

    def test_single_tenant_requires_tenant_id(self, worker_engine):
        with pytest.raises(ValueError, match="tenant_id parameter is required"):
            purge_tenant_historical_task()


class TestTenantValidation:

    def test_valid_tenant(self, worker_engine, free_tenant):
        assert validate_tenant_id(str(free_tenant)) == free_tenant

    def test_malformed_id(self, worker_engine):
        with pytest.raises(ValueError, match="Invalid tenant_id format"):
            validate_tenant_id("not-a-uuid")

    def test_missing_tenant(self, worker_engine):
        with pytest.raises(ValueError, match="does not exist"):
            validate_tenant_id(str(uuid4()))


def test_beat_schedule():
    schedule = celery_app.conf.beat_schedule

    assert schedule["cache-sweep-hourly"]["task"] == "retention.sweep_cache"
    assert schedule["historical-purge-daily"]["task"] == "retention.purge_historical"
