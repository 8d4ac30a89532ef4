"""
Primary domain resolution.

``Tenant.custom_domain*`` is a materialized view of the tenant's primary
CustomDomain. ``refresh_origin_pointer`` is the only writer and rebuilds it
from scratch after every domain change; ``resolve_origin`` reads only those
columns, so it is cheap enough for every link, email and SEO tag.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import TenantNotFound
from app.crud import crud_custom_domain, crud_tenant
from app.models.tenant import Tenant

logger = logging.getLogger("storefront.origin")

# host -> tenant_id, for inbound Host header resolution
_HOST_CACHE: Dict[str, str] = {}


@dataclass(frozen=True)
class Origin:
    host: str
    is_custom_domain: bool
    ssl_enabled: bool

    @property
    def scheme(self) -> str:
        return "https" if self.ssl_enabled else "http"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.host}"


def default_subdomain(slug: str) -> str:
    return f"{slug}.{settings.PLATFORM_BASE_DOMAIN}"


class PrimaryDomainResolver:
    def __init__(self, db: Session):
        self.db = db

    def resolve_origin(self, tenant_id: UUID) -> Origin:
        """Verified primary custom domain, else the default platform subdomain."""
        row = self.db.query(
            Tenant.slug,
            Tenant.custom_domain,
            Tenant.custom_domain_verified,
            Tenant.custom_domain_ssl_enabled,
        ).filter(Tenant.id == tenant_id).first()
        if row is None:
            raise TenantNotFound()

        if row.custom_domain and row.custom_domain_verified:
            return Origin(
                host=row.custom_domain,
                is_custom_domain=True,
                ssl_enabled=bool(row.custom_domain_ssl_enabled),
            )
        # Platform subdomain is covered by the platform wildcard certificate
        return Origin(host=default_subdomain(row.slug), is_custom_domain=False, ssl_enabled=True)

    def resolve_tenant_for_host(self, host: str) -> Optional[str]:
        """Inbound direction: which tenant does this Host header belong to?"""
        host = host.split(":")[0].strip().lower().rstrip(".")
        if not host:
            return None
        if host in _HOST_CACHE:
            return _HOST_CACHE[host]

        tenant_id: Optional[str] = None
        suffix = "." + settings.PLATFORM_BASE_DOMAIN
        if host.endswith(suffix):
            tenant = crud_tenant.get_by_slug(self.db, host[: -len(suffix)])
            if tenant:
                tenant_id = str(tenant.id)
        else:
            tenant = crud_tenant.get_by_custom_domain(self.db, host)
            if tenant:
                tenant_id = str(tenant.id)

        if tenant_id:
            _HOST_CACHE[host] = tenant_id
        return tenant_id


def refresh_origin_pointer(db: Session, tenant: Tenant) -> Tenant:
    """Rebuild the tenant's resolved-origin columns from its primary record.

    Caller flushes pending domain changes first and commits afterwards.
    """
    previous = tenant.custom_domain
    primary = crud_custom_domain.get_primary(db, tenant.id)

    if primary is not None and primary.is_verified:
        crud_tenant.set_origin_pointer(
            db, tenant,
            custom_domain=primary.full_domain,
            verified=True,
            ssl_enabled=primary.ssl_active,
        )
    else:
        crud_tenant.set_origin_pointer(db, tenant, custom_domain=None, verified=False, ssl_enabled=False)

    if previous != tenant.custom_domain:
        logger.info(
            "Tenant %s origin pointer %s -> %s",
            tenant.id, previous or "(default)", tenant.custom_domain or "(default)",
        )
        invalidate_host_cache(previous)
    return tenant


def invalidate_host_cache(host: Optional[str] = None) -> None:
    """Clear host cache when domains are added/removed."""
    if host:
        _HOST_CACHE.pop(host, None)
    else:
        _HOST_CACHE.clear()
