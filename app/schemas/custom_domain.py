from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel


class DomainCreate(BaseModel):
    domain_name: str
    subdomain_label: Optional[str] = None


class DnsRecord(BaseModel):
    name: str
    value: str
    type: str


class DnsInstructions(BaseModel):
    txt_record: DnsRecord
    cname_record: DnsRecord


class CustomDomain(BaseModel):
    id: UUID
    tenant_id: UUID
    domain_name: str
    subdomain_label: Optional[str] = None
    full_domain: str
    verification_status: str  # pending, verified, failed
    verification_token: str
    verification_method: str
    verified_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    error_message: Optional[str] = None
    ssl_status: str  # pending, active, failed, expired
    ssl_issued_at: Optional[datetime] = None
    ssl_expires_at: Optional[datetime] = None
    dns_configured: bool
    dns_target: str
    dns_instructions: DnsInstructions
    is_active: bool
    is_primary: bool
    redirect_to_https: bool
    redirect_www: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Violation(BaseModel):
    code: str
    message: str


class DomainAvailability(BaseModel):
    full_domain: str
    available: bool
    violations: List[Violation] = []

    class Config:
        from_attributes = True


class DomainHealth(BaseModel):
    domain_id: UUID
    full_domain: str
    verification_status: str
    ssl_status: str
    is_active: bool
    is_primary: bool
    dns_configured: bool
    cname_configured: Optional[bool] = None
    last_checked_at: Optional[datetime] = None
    ssl_expires_at: Optional[datetime] = None
    days_until_ssl_expiry: Optional[int] = None
    ssl_renewal_due: bool = False
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class Origin(BaseModel):
    tenant_id: UUID
    host: str
    url: str
    is_custom_domain: bool
    ssl_enabled: bool


class TaskAccepted(BaseModel):
    task_id: Optional[str] = None
    domain_ids: List[UUID] = []
    detail: Dict[str, Any] = {}
