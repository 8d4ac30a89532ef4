"""
Custom Domain Management API

Allows store Owner/Admin to:
  1. Add a custom domain and get its DNS instructions (TXT + CNAME)
  2. Trigger DNS verification (runs in the worker)
  3. Choose the primary domain
  4. Check certificate status and domain health
  5. List / delete custom domains

Domain errors are rendered by the DomainError handler in app.main.
"""
import logging
from typing import Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.api import deps
from app.core.errors import DomainUnverified
from app.core.security import Principal
from app.models.custom_domain import VerificationStatus
from app.schemas import custom_domain as schemas
from app.services.domain_registry import DomainRegistry
from app.tasks.domain_tasks import refresh_ssl_task, verify_domain_task

router = APIRouter()
logger = logging.getLogger("storefront.api.custom_domains")


@router.get("/", response_model=List[schemas.CustomDomain])
def list_domains(
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    """List the store's custom domains, newest first."""
    return registry.list_domains(principal.tenant_id)


@router.post("/", response_model=schemas.CustomDomain, status_code=201)
def add_domain(
    body: schemas.DomainCreate,
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    """Register a domain; the response carries the DNS records to create."""
    return registry.add_domain(principal.tenant_id, body.domain_name, body.subdomain_label)


@router.get("/availability", response_model=schemas.DomainAvailability)
def check_availability(
    domain: str = Query(..., min_length=1),
    registry: DomainRegistry = Depends(deps.get_registry),
) -> Any:
    return registry.check_availability(domain)


@router.post("/verify-pending", response_model=schemas.TaskAccepted, status_code=202)
def verify_pending(
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    """Queue a DNS check for every pending domain of the store."""
    pending = [d.id for d in registry.list_domains(principal.tenant_id) if d.verification_status == VerificationStatus.PENDING.value]
    for domain_id in pending:
        verify_domain_task.delay(str(domain_id))
    logger.info("Queued verification for %d pending domain(s) of tenant %s", len(pending), principal.tenant_id)
    return schemas.TaskAccepted(domain_ids=pending)


@router.get("/{domain_id}", response_model=schemas.CustomDomain)
def get_domain(
    domain_id: UUID,
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    return registry.get_domain(domain_id, tenant_id=principal.tenant_id)


@router.post("/{domain_id}/verify", response_model=schemas.CustomDomain, status_code=202)
def verify_domain(
    domain_id: UUID,
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    """
    Queue a DNS TXT check.

    The store must publish the TXT record shown in ``dns_instructions``.
    Poll GET /{domain_id} for the outcome.
    """
    record = registry.get_domain(domain_id, tenant_id=principal.tenant_id)
    if not record.is_verified:
        task = verify_domain_task.delay(str(record.id))
        logger.info("Verification queued for %s (task %s)", record.full_domain, task.id)
    return record


@router.post("/{domain_id}/primary", response_model=schemas.CustomDomain)
def set_primary(
    domain_id: UUID,
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    return registry.set_primary_domain(domain_id, tenant_id=principal.tenant_id)


@router.post("/{domain_id}/ssl/refresh", response_model=schemas.CustomDomain, status_code=202)
def refresh_ssl(
    domain_id: UUID,
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    """Queue a certificate check. Only verified domains get certificates."""
    record = registry.get_domain(domain_id, tenant_id=principal.tenant_id)
    if not record.is_verified:
        raise DomainUnverified("Certificates are only issued after the domain is verified.")
    refresh_ssl_task.delay(str(record.id))
    return record


@router.get("/{domain_id}/health", response_model=schemas.DomainHealth)
def domain_health(
    domain_id: UUID,
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Any:
    return registry.domain_health(domain_id, tenant_id=principal.tenant_id)


@router.delete("/{domain_id}", status_code=204)
def delete_domain(
    domain_id: UUID,
    registry: DomainRegistry = Depends(deps.get_registry),
    principal: Principal = Depends(deps.require_domain_manager),
) -> Response:
    registry.remove_domain(domain_id, tenant_id=principal.tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
