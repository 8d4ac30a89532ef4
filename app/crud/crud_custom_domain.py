from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.custom_domain import CustomDomain, VerificationStatus


def get(db: Session, domain_id: UUID) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(CustomDomain.id == domain_id).first()


def get_by_full_domain(db: Session, full_domain: str) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(CustomDomain.full_domain == full_domain).first()


def get_multi_by_tenant(db: Session, tenant_id: UUID) -> List[CustomDomain]:
    return (
        db.query(CustomDomain)
        .filter(CustomDomain.tenant_id == tenant_id)
        .order_by(CustomDomain.created_at.desc())
        .all()
    )


def count_by_tenant(db: Session, tenant_id: UUID) -> int:
    return db.query(func.count(CustomDomain.id)).filter(
        CustomDomain.tenant_id == tenant_id
    ).scalar() or 0


def get_primary(db: Session, tenant_id: UUID) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(
        CustomDomain.tenant_id == tenant_id,
        CustomDomain.is_primary.is_(True),
        CustomDomain.is_active.is_(True),
    ).first()


def insert(db: Session, *, db_obj: CustomDomain) -> CustomDomain:
    """Add and flush. Raises IntegrityError when full_domain already exists."""
    db.add(db_obj)
    db.flush()
    return db_obj


def clear_primary(db: Session, tenant_id: UUID, *, keep_id: UUID) -> int:
    """Unset is_primary on every other record of the tenant in one UPDATE."""
    return (
        db.query(CustomDomain)
        .filter(
            CustomDomain.tenant_id == tenant_id,
            CustomDomain.id != keep_id,
            CustomDomain.is_primary.is_(True),
        )
        .update({CustomDomain.is_primary: False}, synchronize_session="fetch")
    )


def list_ids_by_status(
    db: Session,
    status: VerificationStatus,
    *,
    tenant_id: Optional[UUID] = None,
    created_before: Optional[datetime] = None,
    updated_before: Optional[datetime] = None,
) -> List[UUID]:
    query = db.query(CustomDomain.id).filter(CustomDomain.verification_status == status.value)
    if tenant_id:
        query = query.filter(CustomDomain.tenant_id == tenant_id)
    if created_before:
        query = query.filter(CustomDomain.created_at < created_before)
    if updated_before:
        query = query.filter(CustomDomain.updated_at < updated_before)
    return [row.id for row in query.order_by(CustomDomain.created_at).all()]


def get_fresh(db: Session, domain_id: UUID) -> Optional[CustomDomain]:
    """Re-read from the database, overwriting any stale identity-map state."""
    return (
        db.query(CustomDomain)
        .filter(CustomDomain.id == domain_id)
        .populate_existing()
        .first()
    )


def fail_if_pending(db: Session, domain_id: UUID, *, error_message: str) -> bool:
    """pending -> failed in one conditional UPDATE.

    False when the row is gone or has left ``pending`` since it was listed.
    """
    updated = (
        db.query(CustomDomain)
        .filter(
            CustomDomain.id == domain_id,
            CustomDomain.verification_status == VerificationStatus.PENDING.value,
        )
        .update(
            {
                CustomDomain.verification_status: VerificationStatus.FAILED.value,
                CustomDomain.error_message: error_message,
            },
            synchronize_session=False,
        )
    )
    return updated == 1
