from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from app.models.tenant import Tenant


def get(db: Session, tenant_id: UUID) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.id == tenant_id).first()


def get_for_update(db: Session, tenant_id: UUID) -> Optional[Tenant]:
    """Row-lock the tenant for the rest of the transaction (no-op on SQLite)."""
    return db.query(Tenant).filter(Tenant.id == tenant_id).with_for_update().first()


def get_by_slug(db: Session, slug: str) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.slug == slug).first()


def get_by_custom_domain(db: Session, host: str) -> Optional[Tenant]:
    return db.query(Tenant).filter(
        Tenant.custom_domain == host,
        Tenant.custom_domain_verified.is_(True),
    ).first()


def create(db: Session, *, slug: str, name: str, plan: str = "trial", status: str = "active") -> Tenant:
    db_obj = Tenant(slug=slug.lower(), name=name, plan=plan, status=status)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def set_origin_pointer(
    db: Session,
    tenant: Tenant,
    *,
    custom_domain: Optional[str],
    verified: bool,
    ssl_enabled: bool,
) -> Tenant:
    tenant.custom_domain = custom_domain
    tenant.custom_domain_verified = verified
    tenant.custom_domain_ssl_enabled = ssl_enabled
    db.add(tenant)
    return tenant
