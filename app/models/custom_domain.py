"""
Custom Domain Model

Tracks per-tenant custom domain records with DNS verification and SSL state.
"""
import enum
import uuid
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Index, JSON, Text, Uuid, text,
)
from sqlalchemy.orm import relationship
from app.db.base_class import Base
from app.models.common import utcnow


class VerificationStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


class VerificationMethod(str, enum.Enum):
    DNS_TXT = "dns_txt"
    DNS_CNAME = "dns_cname"


class SslStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"
    EXPIRED = "expired"


class CustomDomain(Base):
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    tenant_id = Column(
        Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    domain_name = Column(String(253), nullable=False)
    subdomain_label = Column(String(63), nullable=True)
    full_domain = Column(String(253), nullable=False)

    # DNS Verification
    verification_status = Column(String(16), nullable=False, default=VerificationStatus.PENDING.value)
    verification_token = Column(String(64), nullable=False)   # TXT challenge value
    verification_method = Column(String(16), nullable=False, default=VerificationMethod.DNS_TXT.value)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    # SSL status
    ssl_status = Column(String(16), nullable=False, default=SslStatus.PENDING.value)
    ssl_issued_at = Column(DateTime(timezone=True), nullable=True)
    ssl_expires_at = Column(DateTime(timezone=True), nullable=True)

    # DNS routing
    dns_configured = Column(Boolean, nullable=False, default=False)
    dns_target = Column(String(255), nullable=False)
    dns_instructions = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    redirect_to_https = Column(Boolean, nullable=False, default=True)
    redirect_www = Column(Boolean, nullable=False, default=False)

    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        # Global uniqueness across tenants, enforced by the store on insert
        Index("uq_customdomains_full_domain", "full_domain", unique=True),
        # At most one active primary per tenant
        Index(
            "uq_customdomains_tenant_primary",
            "tenant_id",
            unique=True,
            postgresql_where=text("is_primary AND is_active"),
            sqlite_where=text("is_primary = 1 AND is_active = 1"),
        ),
        Index("ix_customdomains_verification_status", "verification_status"),
    )

    # Relationships
    tenant = relationship("Tenant", back_populates="custom_domains")

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED.value

    @property
    def ssl_active(self) -> bool:
        return self.ssl_status == SslStatus.ACTIVE.value

    def __repr__(self) -> str:
        return (
            f"<CustomDomain(id={self.id}, full_domain={self.full_domain!r}, "
            f"status={self.verification_status!r}, primary={self.is_primary})>"
        )
