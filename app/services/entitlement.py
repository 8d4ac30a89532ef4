"""
Entitlement gate: may this tenant's plan use custom domains?

All callers go through ``FailClosedEntitlementGate`` so a billing outage
denies the feature instead of granting it.
"""
import logging
import time
from typing import Any, Dict, Optional, Protocol, Tuple
from uuid import UUID

import httpx
from sqlalchemy.orm import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.config import settings
from app.models.tenant import Tenant
from app.services.subscription import get_plan_feature, get_plan_limit

logger = logging.getLogger("storefront.entitlement")


class EntitlementGate(Protocol):
    def can_use_custom_domain(self, tenant_id: UUID) -> bool: ...

    def max_custom_domains(self, tenant_id: UUID) -> Optional[int]: ...


class PlanEntitlementGate:
    """Reads the tenant's plan from the local database."""

    def __init__(self, db: Session):
        self.db = db

    def _plan(self, tenant_id: UUID) -> Optional[str]:
        row = self.db.query(Tenant.plan, Tenant.status).filter(Tenant.id == tenant_id).first()
        if not row or row.status != "active":
            return None
        return row.plan

    def can_use_custom_domain(self, tenant_id: UUID) -> bool:
        plan = self._plan(tenant_id)
        return plan is not None and get_plan_feature(plan, "custom_domain")

    def max_custom_domains(self, tenant_id: UUID) -> Optional[int]:
        plan = self._plan(tenant_id)
        if plan is None:
            return 0
        return get_plan_limit(plan, "max_custom_domains")


class HttpEntitlementGate:
    """Asks the billing service: GET {base}/tenants/{id}/entitlements.

    One answer per tenant is reused for ``cache_ttl`` seconds, so the
    feature check and the limit check of one operation share a round trip.
    Errors are never cached.
    """

    def __init__(
        self,
        base_url: str,
        service_token: str = "",
        timeout: float = 3.0,
        transport: Optional[httpx.BaseTransport] = None,
        cache_ttl: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_token = service_token
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._transport = transport
        self._cache: Dict[UUID, Tuple[float, Dict[str, Any]]] = {}

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=1),
        reraise=True,
    )
    def _fetch(self, tenant_id: UUID) -> Dict[str, Any]:
        headers = {}
        if self.service_token:
            headers["Authorization"] = f"Bearer {self.service_token}"
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.get(f"{self.base_url}/tenants/{tenant_id}/entitlements", headers=headers)
            response.raise_for_status()
            return response.json()

    def _entitlements(self, tenant_id: UUID) -> Dict[str, Any]:
        cached = self._cache.get(tenant_id)
        if cached and time.monotonic() - cached[0] < self.cache_ttl:
            return cached[1]
        data = self._fetch(tenant_id)
        self._cache[tenant_id] = (time.monotonic(), data)
        return data

    def can_use_custom_domain(self, tenant_id: UUID) -> bool:
        return bool(self._entitlements(tenant_id).get("custom_domain", False))

    def max_custom_domains(self, tenant_id: UUID) -> Optional[int]:
        value = self._entitlements(tenant_id).get("max_custom_domains", 0)
        return None if value is None or value < 0 else int(value)


class FailClosedEntitlementGate:
    """Any error or timeout from the wrapped gate counts as 'not entitled'."""

    def __init__(self, inner: EntitlementGate):
        self.inner = inner

    def can_use_custom_domain(self, tenant_id: UUID) -> bool:
        try:
            return bool(self.inner.can_use_custom_domain(tenant_id))
        except Exception as e:
            logger.warning("Entitlement check failed for tenant %s, denying: %s", tenant_id, e)
            return False

    def max_custom_domains(self, tenant_id: UUID) -> Optional[int]:
        try:
            return self.inner.max_custom_domains(tenant_id)
        except Exception as e:
            logger.warning("Domain limit lookup failed for tenant %s, denying: %s", tenant_id, e)
            return 0


def get_entitlement_gate(db: Session) -> FailClosedEntitlementGate:
    """Remote billing service when configured, local plan matrix otherwise."""
    if settings.ENTITLEMENT_SERVICE_URL:
        inner: EntitlementGate = HttpEntitlementGate(
            settings.ENTITLEMENT_SERVICE_URL,
            service_token=settings.ENTITLEMENT_SERVICE_TOKEN,
            timeout=settings.ENTITLEMENT_TIMEOUT,
        )
    else:
        inner = PlanEntitlementGate(db)
    return FailClosedEntitlementGate(inner)
