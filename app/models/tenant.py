import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Uuid
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.models.common import utcnow


class Tenant(Base):
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    slug = Column(String(63), unique=True, nullable=False, index=True)  # <slug>.<platform base domain>
    name = Column(String, index=True, nullable=False)
    plan = Column(String, default="trial")  # trial, starter, professional, enterprise
    status = Column(String, default="active")  # active, suspended
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # ── Resolved origin pointer (denormalized from the primary CustomDomain) ──
    custom_domain = Column(String(255), nullable=True, unique=True)
    custom_domain_verified = Column(Boolean, nullable=False, default=False)
    custom_domain_ssl_enabled = Column(Boolean, nullable=False, default=False)

    # Relationships
    custom_domains = relationship(
        "CustomDomain", back_populates="tenant", cascade="all, delete-orphan", passive_deletes=True
    )
    audit_logs = relationship("AuditLog", back_populates="tenant", cascade="all, delete-orphan")
