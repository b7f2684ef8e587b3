"""PrivacyAuditLog SQLAlchemy model"""

import uuid

from sqlalchemy import Column, Text, DateTime, Index, Uuid

from .base import Base, PortableJSONB, utc_now


class PrivacyAuditLog(Base):
    """Append-only record of privacy-relevant decisions.

    Records consent changes, storage grants/denials and deletions for
    compliance. Entries are append-only and should never be updated or deleted.
    """
    __tablename__ = "privacy_audit_log"
    __table_args__ = (
        Index("ix_privacy_audit_log_tenant_id", "tenant_id"),
        Index("ix_privacy_audit_log_tenant_id_created_at", "tenant_id", "created_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Nullable: system-wide events (global sweeps) have no tenant
    tenant_id = Column(Uuid(as_uuid=True), nullable=True)
    action = Column(Text, nullable=False)
    details_json = Column(PortableJSONB, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    def to_dict(self):
        """Convert audit log entry to dictionary representation"""
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id) if self.tenant_id else None,
            "action": self.action,
            "details": self.details_json,
            "created_at": self.created_at.isoformat(),
        }
