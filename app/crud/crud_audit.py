from typing import List, Optional, Dict
from uuid import UUID
from sqlalchemy.orm import Session
from app.models.audit import AuditLog


def add_audit_log(
    db: Session,
    *,
    tenant_id: UUID,
    actor: Optional[str],
    action: str,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[Dict] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction (no commit)."""
    db_obj = AuditLog(
        tenant_id=tenant_id,
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        detail_json=details or {},
    )
    db.add(db_obj)
    return db_obj


def get_audit_logs(
    db: Session,
    *,
    tenant_id: UUID,
    action: Optional[str] = None,
    skip: int = 0,
    limit: int = 100
) -> List[AuditLog]:
    query = db.query(AuditLog).filter(AuditLog.tenant_id == tenant_id)

    if action:
        query = query.filter(AuditLog.action == action)

    return query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit).all()
