import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.models.common import utcnow


class AuditLog(Base):
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    tenant_id = Column(
        Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    actor = Column(String, nullable=True)  # user id from the token, or "system" for jobs

    action = Column(String, nullable=False, index=True)  # domain.added, domain.verified, domain.primary_set, ...
    target_type = Column(String, nullable=True)  # custom_domain
    target_id = Column(String, nullable=True)
    detail_json = Column(JSON, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    tenant = relationship("Tenant", back_populates="audit_logs")
