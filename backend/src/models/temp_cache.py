"""TempCacheEntry SQLAlchemy model"""

from sqlalchemy import Column, Text, Boolean, DateTime, Index, Uuid

from .base import Base, PortableJSONB, utc_now


class TempCacheEntry(Base):
    """Short-lived telemetry snapshot with a per-row expiration timestamp.

    One row per logical key. Rows with expires_at <= now are dead even before
    the sweeper physically removes them.
    """
    __tablename__ = "temp_cache"
    __table_args__ = (
        Index("ix_temp_cache_expires_at", "expires_at"),
        Index("ix_temp_cache_tenant_id", "tenant_id"),
    )

    key = Column(Text, primary_key=True)
    tenant_id = Column(Uuid(as_uuid=True), nullable=True)
    category = Column(Text, nullable=True)
    value = Column(PortableJSONB, nullable=True)
    encrypted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    expires_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<TempCacheEntry(key='{self.key}', expires_at={self.expires_at})>"
