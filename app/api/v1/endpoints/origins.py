"""
Canonical origin lookup for link, email and SEO generation.
"""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api import deps
from app.core.security import Principal
from app.schemas.custom_domain import Origin
from app.services.origin_resolver import PrimaryDomainResolver

router = APIRouter()


@router.get("/{tenant_id}", response_model=Origin)
def resolve_origin(
    tenant_id: UUID,
    db: Session = Depends(deps.get_db),
    principal: Principal = Depends(deps.get_current_principal),
) -> Any:
    if not principal.is_superuser and principal.tenant_id != tenant_id:
        raise HTTPException(status_code=403, detail="Not allowed to read another store's origin")
    origin = PrimaryDomainResolver(db).resolve_origin(tenant_id)
    return Origin(
        tenant_id=tenant_id,
        host=origin.host,
        url=origin.url,
        is_custom_domain=origin.is_custom_domain,
        ssl_enabled=origin.ssl_enabled,
    )
