"""
Host Resolution Middleware

Resolves the storefront tenant from the Host header: either a platform
subdomain (<slug>.<base domain>) or a verified primary custom domain.
Sets request.state.resolved_tenant_id for downstream handlers.
"""

import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings
from app.db.session import SessionLocal
from app.services.origin_resolver import PrimaryDomainResolver

logger = logging.getLogger("storefront.domain")


class CustomDomainMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        host = request.headers.get("host", "").split(":")[0].lower()
        request.state.resolved_tenant_id = None

        # Skip for well-known hosts
        if host in ("localhost", "127.0.0.1", "", "test", settings.PLATFORM_BASE_DOMAIN):
            return await call_next(request)

        db = SessionLocal()
        try:
            tenant_id = PrimaryDomainResolver(db).resolve_tenant_for_host(host)
            if tenant_id:
                request.state.resolved_tenant_id = tenant_id
                logger.debug("Resolved host %s → tenant %s", host, tenant_id)
        except Exception as e:
            logger.warning("Host resolution failed for %s: %s", host, e)
        finally:
            db.close()

        return await call_next(request)
