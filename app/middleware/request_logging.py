"""
Request Logging Middleware

- Assigns a unique request_id to every request
- Sets tenant_id / user_id context from the bearer token
- Logs request start & end with timing
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.security import decode_access_token
from app.logging_config import (
    generate_request_id,
    request_id_ctx,
    tenant_id_ctx,
    user_id_ctx,
)

logger = logging.getLogger("storefront.request")


def _extract_user_context(request: Request) -> tuple[str, str]:
    """Best-effort tenant / user from the bearer token, for log context only.

    Auth itself happens in the route dependencies.
    """
    auth = request.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        return "-", "-"
    try:
        principal = decode_access_token(auth[7:])
    except ValueError:
        return "-", "-"
    return str(principal.tenant_id), principal.user_id


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        # Generate & set request ID
        rid = generate_request_id()
        request_id_ctx.set(rid)

        # Extract user context from JWT
        tid, uid = _extract_user_context(request)
        tenant_id_ctx.set(tid)
        user_id_ctx.set(uid)

        # Add request ID to response headers
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "-"

        logger.info("→ %s %s from %s", method, path, client_ip)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = (time.perf_counter() - start) * 1000
            logger.exception("✗ %s %s - %.1fms (unhandled exception)", method, path, elapsed)
            raise

        elapsed = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = rid

        logger.info(
            "← %s %s - %d - %.1fms",
            method, path, response.status_code, elapsed,
        )
        return response
