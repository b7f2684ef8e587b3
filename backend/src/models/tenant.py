"""Tenant model - Root entity for multi-tenant isolation and privacy preferences"""

import uuid

from sqlalchemy import Column, Text, Boolean, Integer, DateTime, CheckConstraint, Uuid
from sqlalchemy.orm import validates

from .base import Base, utc_now


PLAN_TIERS = ("FREE", "DEVELOPER", "STARTUP", "BUSINESS", "PREMIUM", "ENTERPRISE")
STORAGE_MODES = ("MEMORY_ONLY", "TEMPORARY", "HISTORICAL")


class Tenant(Base):
    """
    Tenant model - the billing/organizational unit whose data and consent
    settings the privacy engine governs.

    Plan tier is owned by billing; this service only reads it. The privacy
    columns (storage_mode through consent_date) are written exclusively by the
    consent update operation.
    """
    __tablename__ = "tenant"
    __table_args__ = (
        CheckConstraint(
            "storage_mode IN ('MEMORY_ONLY', 'TEMPORARY', 'HISTORICAL')",
            name="ck_tenant_storage_mode",
        ),
        CheckConstraint("retention_days >= 0", name="ck_tenant_retention_days"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    plan_tier = Column(Text, nullable=False, default="FREE")

    # Privacy preferences (privacy-first defaults)
    storage_mode = Column(Text, nullable=False, default="MEMORY_ONLY")
    retention_days = Column(Integer, nullable=False, default=0)
    encrypt_data = Column(Boolean, nullable=False, default=True)
    auto_delete = Column(Boolean, nullable=False, default=True)
    consent_given = Column(Boolean, nullable=False, default=False)
    consent_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    @validates('name')
    def validate_name(self, key, value):
        """
        Ensure tenant name is not empty and within length limits.

        Raises:
            ValueError: If name is empty/whitespace or exceeds 200 characters
        """
        if not value or len(value.strip()) == 0:
            raise ValueError("Tenant name cannot be empty")
        if len(value) > 200:
            raise ValueError("Tenant name cannot exceed 200 characters")
        return value.strip()

    @validates('plan_tier')
    def validate_plan_tier(self, key, value):
        if value not in PLAN_TIERS:
            raise ValueError(f"Unknown plan tier: {value}")
        return value

    def __repr__(self):
        return f"<Tenant(id={self.id}, name='{self.name}', plan_tier='{self.plan_tier}')>"
