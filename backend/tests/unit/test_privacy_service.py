"""Unit tests for the privacy service facade.

Tests cover:
- Storage decisions and real-time-only fallback
- TEMPORARY and HISTORICAL storage paths
- Consent updates (date stamping, plan gating, eviction on withdrawal)
- Timeout-bounded tenant lookups and saves
- Data export and erasure
"""

import time
from datetime import timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest

from audit.service import AuditAction
from cache.service import EphemeralCache
from database import session_scope
from infrastructure.repositories import TimeoutTenantLookup
from models.temp_cache import TempCacheEntry
from privacy.errors import StorageModeNotAvailable, TenantNotFound
from privacy.schemas import StorageMode
from privacy.service import PLAN_RESTRICTED_DISCLOSURE, REAL_TIME_ONLY_DISCLOSURE
from privacy.timeouts import BoundedCaller


def _actions(audit_trail, tenant_id):
    entries, _ = audit_trail.list_for_tenant(tenant_id, limit=100)
    return [entry.action for entry in entries]


class TestStore:
    """Test store() across storage modes."""

    def test_without_consent_runs_real_time_only(self, privacy_service, free_tenant):
        result = privacy_service.store(free_tenant, "metrics", {"depth": 3})

        assert result.stored is False
        assert result.storage_mode == StorageMode.MEMORY_ONLY
        assert result.disclosure == REAL_TIME_ONLY_DISCLOSURE
        assert privacy_service.get_stats().total_live_keys == 0

    def test_temporary_store_is_encrypted_at_rest(self, privacy_service, consenting_tenant, session_factory, clock):
        result = privacy_service.store(consenting_tenant, "metrics", {"depth": 3}, identifier="orders")

        assert result.stored is True
        assert result.storage_mode == StorageMode.TEMPORARY
        assert result.encrypted is True
        assert result.expires_at == clock() + timedelta(minutes=30)
        assert privacy_service.fetch(consenting_tenant, "metrics", "orders") == {"depth": 3}

        with session_scope(session_factory) as db:
            row = db.get(TempCacheEntry, result.key)
            assert row.encrypted is True
            assert "depth" not in str(row.value)

    def test_custom_ttl(self, privacy_service, consenting_tenant, clock):
        result = privacy_service.store(consenting_tenant, "logs", ["line"], ttl_minutes=5)

        assert result.expires_at == clock() + timedelta(minutes=5)
        clock.advance(minutes=6)
        assert privacy_service.fetch(consenting_tenant, "logs") is None

    def test_non_positive_ttl_rejected(self, privacy_service, consenting_tenant):
        with pytest.raises(ValueError):
            privacy_service.store(consenting_tenant, "metrics", 1, ttl_minutes=0)

    def test_unencrypted_policy_stores_plaintext(self, privacy_service, make_tenant):
        tenant_id = make_tenant(storage_mode="TEMPORARY", encrypt_data=False, consent_given=True)

        result = privacy_service.store(tenant_id, "alerts", {"level": "warning"})

        assert result.stored is True
        assert result.encrypted is False

    def test_historical_store_goes_to_durable_store(self, privacy_engine, historical_tenant, clock):
        service = privacy_engine.service

        result = service.store(historical_tenant, "metrics", {"rate": 120})

        assert result.stored is True
        assert result.storage_mode == StorageMode.HISTORICAL
        assert result.encrypted is True
        assert result.deletion_due_at == clock() + timedelta(days=30)
        assert privacy_engine.durable_store.count_records(tenant_id=historical_tenant) == 1
        assert service.get_stats().total_live_keys == 0

    def test_historical_mode_on_ineligible_plan_is_denied(self, privacy_service, make_tenant):
        """A downgraded plan keeps the stored mode but loses historical storage."""
        tenant_id = make_tenant(plan_tier="FREE", storage_mode="HISTORICAL", consent_given=True)

        result = privacy_service.store(tenant_id, "metrics", 1)

        assert result.stored is False
        assert result.storage_mode == StorageMode.HISTORICAL
        assert result.disclosure == PLAN_RESTRICTED_DISCLOSURE
        assert "enable temporary storage" not in result.disclosure

    def test_unknown_tenant_is_denied(self, privacy_service):
        result = privacy_service.store(uuid4(), "metrics", 1)

        assert result.stored is False

    def test_unknown_category_rejected(self, privacy_service, consenting_tenant):
        with pytest.raises(ValueError):
            privacy_service.store(consenting_tenant, "passwords", "hunter2")

    def test_delete_entry(self, privacy_service, consenting_tenant, audit_trail):
        privacy_service.store(consenting_tenant, "connections", [1, 2], identifier="vhost-a")

        assert privacy_service.delete_entry(consenting_tenant, "connections", "vhost-a") is True
        assert privacy_service.delete_entry(consenting_tenant, "connections", "vhost-a") is False
        assert privacy_service.fetch(consenting_tenant, "connections", "vhost-a") is None
        assert AuditAction.CACHE_ENTRY_DELETED in _actions(audit_trail, consenting_tenant)


class TestUpdateConsent:
    """Test consent and preference updates."""

    def test_granting_consent_stamps_date(self, privacy_service, free_tenant, clock):
        policy = privacy_service.update_consent(free_tenant, True, storage_mode="TEMPORARY", retention_days=7)

        assert policy.consent_given is True
        assert policy.consent_date == clock()
        assert policy.effective_storage_mode == StorageMode.TEMPORARY
        assert privacy_service.may_store(free_tenant, "metrics") is True

    def test_consent_date_kept_while_consent_stays(self, privacy_service, free_tenant, clock):
        granted_at = clock()
        privacy_service.update_consent(free_tenant, True, storage_mode="TEMPORARY")
        clock.advance(days=3)

        policy = privacy_service.update_consent(free_tenant, True, retention_days=14)

        assert policy.consent_date == granted_at
        assert policy.retention_days == 14

    def test_withdrawal_clears_date_and_evicts_cache(self, privacy_service, consenting_tenant, audit_trail):
        privacy_service.store(consenting_tenant, "metrics", {"depth": 3})

        policy = privacy_service.update_consent(consenting_tenant, False)

        assert policy.consent_given is False
        assert policy.consent_date is None
        assert policy.effective_storage_mode == StorageMode.MEMORY_ONLY
        assert privacy_service.fetch(consenting_tenant, "metrics") is None
        assert privacy_service.store(consenting_tenant, "metrics", 1).stored is False

        actions = _actions(audit_trail, consenting_tenant)
        assert AuditAction.CONSENT_UPDATED in actions
        assert AuditAction.CACHE_ENTRY_DELETED in actions

    def test_historical_on_free_plan_rejected_without_change(self, privacy_service, consenting_tenant):
        before = privacy_service.get_policy(consenting_tenant)

        with pytest.raises(StorageModeNotAvailable) as exc_info:
            privacy_service.update_consent(consenting_tenant, True, storage_mode="HISTORICAL")

        assert exc_info.value.plan_tier == "FREE"
        assert exc_info.value.storage_mode == "HISTORICAL"
        assert privacy_service.get_policy(consenting_tenant) == before

    def test_historical_on_premium_schedules_deletion(self, privacy_service, premium_tenant, audit_trail):
        policy = privacy_service.update_consent(
            premium_tenant, True, storage_mode="HISTORICAL", retention_days=90, auto_delete=True
        )

        assert policy.effective_storage_mode == StorageMode.HISTORICAL
        assert AuditAction.HISTORICAL_DELETION_SCHEDULED in _actions(audit_trail, premium_tenant)

    def test_unknown_tenant(self, privacy_service):
        with pytest.raises(TenantNotFound):
            privacy_service.update_consent(uuid4(), True)

    def test_update_settings_keeps_consent(self, privacy_service, consenting_tenant, clock):
        granted_at = privacy_service.get_policy(consenting_tenant).consent_date
        clock.advance(hours=1)

        policy = privacy_service.update_settings(consenting_tenant, retention_days=3, encrypt_data=False)

        assert policy.consent_given is True
        assert policy.consent_date == granted_at
        assert policy.retention_days == 3
        assert policy.encrypt_data is False

    def test_slow_lookup_times_out(self, privacy_engine, consenting_tenant):
        """A hung tenant lookup surfaces TimeoutError instead of blocking the request."""
        slow = Mock()
        slow.get_tenant_plan_and_consent.side_effect = lambda tenant_id: time.sleep(1.0)
        caller = BoundedCaller(0.2, name="test-lookup")
        privacy_engine.service.lookup = TimeoutTenantLookup(slow, caller)

        started = time.monotonic()
        with pytest.raises(TimeoutError):
            privacy_engine.service.update_consent(consenting_tenant, False)
        with pytest.raises(TimeoutError):
            privacy_engine.service.update_settings(consenting_tenant, retention_days=3)

        assert time.monotonic() - started < 1.5
        slow.save_privacy_preferences.assert_not_called()
        caller.close()

    def test_slow_save_times_out(self, privacy_engine, consenting_tenant):
        inner = privacy_engine.lookup.inner
        slow = Mock(wraps=inner)
        slow.save_privacy_preferences.side_effect = lambda *args, **kwargs: time.sleep(1.0)
        caller = BoundedCaller(0.2, name="test-lookup")
        privacy_engine.service.lookup = TimeoutTenantLookup(slow, caller)

        with pytest.raises(TimeoutError):
            privacy_engine.service.update_consent(consenting_tenant, True, retention_days=2)
        caller.close()

    def test_available_modes_follow_plan(self, privacy_service, free_tenant, premium_tenant):
        assert StorageMode.HISTORICAL not in privacy_service.available_modes(free_tenant).available_modes
        assert StorageMode.HISTORICAL in privacy_service.available_modes(premium_tenant).available_modes


class TestCacheAdministration:
    """Test stats, manual cleanup and clear."""

    def test_cleanup_now(self, privacy_service, consenting_tenant, clock):
        privacy_service.store(consenting_tenant, "metrics", 1, ttl_minutes=1)
        clock.advance(minutes=2)

        result = privacy_service.cleanup_now()

        assert result.deleted_count == 1
        assert privacy_service.cleanup_now().deleted_count == 0

    def test_clear_cache(self, privacy_service, consenting_tenant):
        privacy_service.store(consenting_tenant, "metrics", 1)
        privacy_service.store(consenting_tenant, "logs", 2)

        assert privacy_service.clear_cache() == 2
        assert privacy_service.get_stats().total_live_keys == 0


class TestDataSubjectRequests:
    """Test export and erasure of a tenant's data."""

    def test_export(self, privacy_engine, historical_tenant, audit_trail, clock):
        service = privacy_engine.service
        service.store(historical_tenant, "metrics", {"rate": 1}, identifier="a")
        service.store(historical_tenant, "logs", {"line": "x"}, identifier="b")
        privacy_engine.cache.set_tenant_data(historical_tenant, "alerts", {"level": "info"}, encrypt=True)

        export = service.export_tenant_data(historical_tenant)

        assert export.tenant_id == historical_tenant
        assert export.historical_record_count == 2
        assert export.stored_data_types == ["alerts", "logs", "metrics"]
        assert export.cached_entries[0]["value"] == {"level": "info"}
        assert export.export_date == clock()
        assert AuditAction.DATA_EXPORTED in _actions(audit_trail, historical_tenant)

    def test_export_for_tenant_without_data(self, privacy_service, free_tenant):
        export = privacy_service.export_tenant_data(free_tenant)

        assert export.stored_data_types == []
        assert export.cached_entries == []
        assert export.historical_record_count == 0
        assert export.privacy_settings.consent_given is False

    def test_delete_all_tenant_data(self, privacy_engine, historical_tenant, consenting_tenant, audit_trail):
        service = privacy_engine.service
        service.store(historical_tenant, "metrics", 1)
        privacy_engine.cache.set_tenant_data(historical_tenant, "alerts", 2)
        service.store(consenting_tenant, "metrics", 3)

        assert service.delete_all_tenant_data(historical_tenant) is True

        assert privacy_engine.durable_store.count_records(tenant_id=historical_tenant) == 0
        assert privacy_engine.cache.entries_for_tenant(historical_tenant) == []
        assert service.fetch(consenting_tenant, "metrics") == 3
        assert service.get_policy(historical_tenant).consent_given is True
        assert AuditAction.TENANT_DATA_DELETED in _actions(audit_trail, historical_tenant)

    def test_delete_all_reports_store_failure(self, privacy_service, consenting_tenant):
        failing_cache = Mock(spec=EphemeralCache)
        failing_cache.delete_tenant.side_effect = RuntimeError("store unavailable")
        privacy_service.cache = failing_cache

        assert privacy_service.delete_all_tenant_data(consenting_tenant) is False
