"""Historical record repository - reference durable store for HISTORICAL mode"""

from datetime import datetime
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy import delete, func, select

from database import SessionFactory, session_scope
from models.base import utc_now
from models.historical_record import HistoricalRecord
from privacy.ports import DurableStorePort
from privacy.timeouts import BoundedCaller


class SqlHistoricalStore(DurableStorePort):
    """Repository for historical_record database operations.

    Handles upserts keyed by (category, key), age-based purges and counts.
    created_at is the time of the latest write, so purges measure the age of
    the value actually held.
    """

    def __init__(self, session_factory: SessionFactory, clock: Callable[[], datetime] = utc_now):
        self.session_factory = session_factory
        self.clock = clock

    def upsert_record(self, category: str, key: str, payload: Any, tenant_id: UUID) -> None:
        with session_scope(self.session_factory) as db:
            record = db.scalars(
                select(HistoricalRecord)
                .where(HistoricalRecord.category == category, HistoricalRecord.key == key)
                .with_for_update()
            ).first()

            if record is None:
                db.add(HistoricalRecord(
                    tenant_id=tenant_id,
                    category=category,
                    key=key,
                    payload=payload,
                    created_at=self.clock(),
                    updated_at=self.clock(),
                ))
            else:
                # A rewrite restarts the retention window, as set() does in the cache
                record.payload = payload
                record.created_at = self.clock()
                record.updated_at = self.clock()

    def delete_records_older_than(self, cutoff: datetime, tenant_id: Optional[UUID] = None) -> int:
        stmt = delete(HistoricalRecord).where(HistoricalRecord.created_at < cutoff)
        if tenant_id is not None:
            stmt = stmt.where(HistoricalRecord.tenant_id == tenant_id)

        with session_scope(self.session_factory) as db:
            result = db.execute(stmt)
            return result.rowcount or 0

    def count_records(self, tenant_id: Optional[UUID] = None, category: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(HistoricalRecord)
        if tenant_id is not None:
            stmt = stmt.where(HistoricalRecord.tenant_id == tenant_id)
        if category is not None:
            stmt = stmt.where(HistoricalRecord.category == category)

        with session_scope(self.session_factory) as db:
            return db.scalar(stmt) or 0

    def delete_tenant_records(self, tenant_id: UUID) -> int:
        with session_scope(self.session_factory) as db:
            result = db.execute(
                delete(HistoricalRecord).where(HistoricalRecord.tenant_id == tenant_id)
            )
            return result.rowcount or 0


class TimeoutDurableStore(DurableStorePort):
    """Bounds every call on another durable store by a timeout.

    Raises TimeoutError from any method whose call overruns.
    """

    def __init__(self, inner: DurableStorePort, caller: BoundedCaller):
        self.inner = inner
        self.caller = caller

    def upsert_record(self, category: str, key: str, payload: Any, tenant_id: UUID) -> None:
        self.caller.call(self.inner.upsert_record, category, key, payload, tenant_id)

    def delete_records_older_than(self, cutoff: datetime, tenant_id: Optional[UUID] = None) -> int:
        return self.caller.call(self.inner.delete_records_older_than, cutoff, tenant_id)

    def count_records(self, tenant_id: Optional[UUID] = None, category: Optional[str] = None) -> int:
        return self.caller.call(self.inner.count_records, tenant_id, category)

    def delete_tenant_records(self, tenant_id: UUID) -> int:
        return self.caller.call(self.inner.delete_tenant_records, tenant_id)
