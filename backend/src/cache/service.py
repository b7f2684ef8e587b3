"""Ephemeral cache - TTL-bounded temporary storage for tenant telemetry.

Backed by the temp_cache table. Guarantees:
- set is an atomic upsert (INSERT ... ON CONFLICT DO UPDATE): last write wins,
  readers never see a mix of two writes
- get treats expires_at <= now as a miss even before the row is swept
- extend only moves the expiry of a live entry; expired rows stay dead
- stats only count live rows

Values the policy marks for encryption are sealed with PayloadEncryption,
using the cache key as associated data.
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import Text, cast, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from database import SessionFactory, session_scope
from infrastructure.encryption import EncryptedEnvelope, PayloadEncryption
from models.base import utc_now
from models.temp_cache import TempCacheEntry
from privacy.errors import DecryptionFailed
from .keys import make_key
from .schemas import CacheStats

logger = logging.getLogger(__name__)


def _upsert_statement(dialect_name: str, values: Dict[str, Any]):
    if dialect_name == "postgresql":
        insert = pg_insert
    elif dialect_name == "sqlite":
        insert = sqlite_insert
    else:
        raise NotImplementedError(f"Cache upsert not supported on {dialect_name}")

    stmt = insert(TempCacheEntry).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[TempCacheEntry.key],
        set_={column: stmt.excluded[column] for column in values if column != "key"},
    )


class EphemeralCache:
    """Keyed store with a per-entry expiration timestamp.

    Each operation runs in its own short transaction, so the cache instance is
    safe to share between request threads and the background sweeper.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        codec: PayloadEncryption,
        default_ttl_minutes: int = 30,
        sweep_probability: float = 0.01,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[Callable[[], float]] = None,
    ):
        self.session_factory = session_factory
        self.codec = codec
        self.default_ttl_minutes = default_ttl_minutes
        self.sweep_probability = sweep_probability
        self.clock = clock
        self._rng = rng or random.random
        self._sweep_trigger: Optional[Callable[[], None]] = None

    def attach_sweep_trigger(self, trigger: Callable[[], None]) -> None:
        """Register the non-blocking callback used for opportunistic sweeps."""
        self._sweep_trigger = trigger

    def set(
        self,
        key: str,
        value: Any,
        ttl_minutes: Optional[int] = None,
        encrypt: bool = False,
        tenant_id: Optional[UUID] = None,
        category: Optional[str] = None,
    ) -> datetime:
        """Upsert an entry and reset its expiry.

        Args:
            key: Cache key (see make_key)
            value: JSON-serialisable value
            ttl_minutes: Time to live; defaults to default_ttl_minutes
            encrypt: Seal the value before storage
            tenant_id: Owning tenant, used by export and delete-all
            category: Data category, informational

        Returns:
            The new expires_at

        Raises:
            ValueError: If ttl_minutes is not positive
            SQLAlchemyError: If the store is unavailable
        """
        ttl = self.default_ttl_minutes if ttl_minutes is None else ttl_minutes
        if ttl <= 0:
            raise ValueError("ttl_minutes must be positive")

        stored, encrypted = value, False
        if encrypt:
            sealed = self.codec.encrypt(value, context=key)
            if isinstance(sealed, EncryptedEnvelope):
                stored, encrypted = sealed.to_dict(), True

        now = self.clock()
        expires_at = now + timedelta(minutes=ttl)
        values = {
            "key": key,
            "tenant_id": tenant_id,
            "category": getattr(category, "value", category),
            "value": stored,
            "encrypted": encrypted,
            "created_at": now,
            "expires_at": expires_at,
        }

        with session_scope(self.session_factory) as db:
            db.execute(_upsert_statement(db.get_bind().dialect.name, values))

        self._maybe_sweep()
        return expires_at

    def get(self, key: str) -> Any:
        """Return the live value for key, or None on a miss.

        Raises:
            DecryptionFailed: If a stored envelope fails authentication
        """
        with session_scope(self.session_factory) as db:
            row = db.execute(
                select(TempCacheEntry.value, TempCacheEntry.encrypted).where(
                    TempCacheEntry.key == key,
                    TempCacheEntry.expires_at > self.clock(),
                )
            ).first()

        if row is None:
            return None
        if not row.encrypted:
            return row.value
        return self._open(key, row.value)

    def delete(self, key: str) -> bool:
        with session_scope(self.session_factory) as db:
            result = db.execute(delete(TempCacheEntry).where(TempCacheEntry.key == key))
            return (result.rowcount or 0) > 0

    def clear(self) -> int:
        with session_scope(self.session_factory) as db:
            result = db.execute(delete(TempCacheEntry))
            return result.rowcount or 0

    def extend(self, key: str, additional_minutes: int) -> bool:
        """Push out the expiry of a live entry.

        Retries until the compare-and-set lands or the entry is no longer live.

        Returns:
            False if the entry is absent or already expired
        """
        if additional_minutes <= 0:
            raise ValueError("additional_minutes must be positive")

        while True:
            with session_scope(self.session_factory) as db:
                current = db.scalar(
                    select(TempCacheEntry.expires_at).where(
                        TempCacheEntry.key == key,
                        TempCacheEntry.expires_at > self.clock(),
                    )
                )
                if current is None:
                    return False

                # Compare-and-set on the expiry we read; a concurrent set or
                # sweep in between makes this match nothing and we re-read.
                result = db.execute(
                    update(TempCacheEntry)
                    .where(
                        TempCacheEntry.key == key,
                        TempCacheEntry.expires_at == current,
                        TempCacheEntry.expires_at > self.clock(),
                    )
                    .values(expires_at=current + timedelta(minutes=additional_minutes))
                )
                if (result.rowcount or 0) > 0:
                    return True
            logger.debug(f"Cache entry changed while extending, retrying: {key}")

    def stats(self) -> CacheStats:
        now = self.clock()
        with session_scope(self.session_factory) as db:
            row = db.execute(
                select(
                    func.count(),
                    func.coalesce(func.sum(func.length(cast(TempCacheEntry.value, Text))), 0),
                    func.min(TempCacheEntry.created_at),
                ).where(TempCacheEntry.expires_at > now)
            ).one()

        return CacheStats(
            total_live_keys=row[0] or 0,
            approximate_size_bytes=int(row[1] or 0),
            oldest_entry_timestamp=row[2],
        )

    def purge_expired(self) -> int:
        """Physically delete rows whose expiry has passed.

        The predicate is evaluated by the store at delete time, so a row that
        was refreshed by a concurrent set is never removed.
        """
        with session_scope(self.session_factory) as db:
            result = db.execute(
                delete(TempCacheEntry).where(TempCacheEntry.expires_at <= self.clock())
            )
            return result.rowcount or 0

    # Tenant-scoped helpers

    def set_tenant_data(
        self,
        tenant_id: UUID,
        category: str,
        value: Any,
        identifier: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
        encrypt: bool = False,
    ) -> datetime:
        key = make_key(tenant_id, category, identifier)
        return self.set(key, value, ttl_minutes, encrypt=encrypt, tenant_id=tenant_id, category=category)

    def get_tenant_data(self, tenant_id: UUID, category: str, identifier: Optional[str] = None) -> Any:
        return self.get(make_key(tenant_id, category, identifier))

    def entries_for_tenant(self, tenant_id: UUID) -> List[Dict[str, Any]]:
        """Live entries of a tenant with decrypted values (for data export)."""
        with session_scope(self.session_factory) as db:
            rows = db.scalars(
                select(TempCacheEntry)
                .where(
                    TempCacheEntry.tenant_id == tenant_id,
                    TempCacheEntry.expires_at > self.clock(),
                )
                .order_by(TempCacheEntry.created_at)
            ).all()

        return [
            {
                "key": row.key,
                "category": row.category,
                "value": self._open(row.key, row.value) if row.encrypted else row.value,
                "encrypted": row.encrypted,
                "created_at": row.created_at,
                "expires_at": row.expires_at,
            }
            for row in rows
        ]

    def delete_tenant(self, tenant_id: UUID) -> int:
        with session_scope(self.session_factory) as db:
            result = db.execute(delete(TempCacheEntry).where(TempCacheEntry.tenant_id == tenant_id))
            return result.rowcount or 0

    def _open(self, key: str, stored: Any) -> Any:
        try:
            return self.codec.decrypt(stored, context=key)
        except DecryptionFailed:
            logger.error(f"Cache entry failed authentication, data corrupted: {key}")
            raise

    def _maybe_sweep(self) -> None:
        if self._sweep_trigger is not None and self._rng() < self.sweep_probability:
            self._sweep_trigger()
