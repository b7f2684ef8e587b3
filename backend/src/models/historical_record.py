"""HistoricalRecord SQLAlchemy model"""

import uuid

from sqlalchemy import Column, Text, DateTime, Index, UniqueConstraint, Uuid

from .base import Base, PortableJSONB, utc_now


class HistoricalRecord(Base):
    """Long-lived telemetry kept for tenants in HISTORICAL storage mode.

    Lifecycle is owned by the scheduled purge job; the privacy engine only
    upserts rows and computes when they become due for deletion.
    """
    __tablename__ = "historical_record"
    __table_args__ = (
        UniqueConstraint("category", "key", name="uq_historical_record_category_key"),
        Index("ix_historical_record_tenant_id_created_at", "tenant_id", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid(as_uuid=True), nullable=False)
    category = Column(Text, nullable=False)
    key = Column(Text, nullable=False)
    payload = Column(PortableJSONB, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<HistoricalRecord(category='{self.category}', key='{self.key}')>"
