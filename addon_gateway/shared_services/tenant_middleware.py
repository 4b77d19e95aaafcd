"""
Caller Tenant Middleware

FastAPI middleware that:
1. Resolves the caller tenant from the X-LC-Tenant header
2. Records it on the request state for the verification dependencies
3. Echoes it back in the X-Tenant-ID response header

The resolved tenant is only a claim. Nothing is authorized until the
request signature has been verified against it.
"""

from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from structlog import get_logger

from ..logging_config import bind_request_context, clear_request_context

logger = get_logger()

CALLER_TENANT_HEADER = "X-LC-Tenant"
DEV_TENANT_HEADER = "X-LC-DevTenant"
APP_HEADER = "X-LC-App"
TENANT_RESPONSE_HEADER = "X-Tenant-ID"

PLATFORM_PREFIXES = (
    "/health",
    "/ping",
    "/v1/health",
    "/docs",
    "/redoc",
    "/openapi.json",
)


class CallerTenantMiddleware(BaseHTTPMiddleware):
    """Attaches the claimed caller tenant to each request."""

    def __init__(self, app, platform_prefixes: Iterable[str] = PLATFORM_PREFIXES):
        super().__init__(app)
        self.platform_prefixes = tuple(platform_prefixes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip tenant resolution for health checks and docs
        if self._is_platform_endpoint(request.url.path):
            return await call_next(request)

        tenant_id = self._identify_tenant(request)
        request.state.tenant_id = tenant_id
        bind_request_context(request.url.path, tenant_id)

        if tenant_id:
            logger.debug("caller_tenant_resolved", tenant_id=tenant_id)

        try:
            response = await call_next(request)
        finally:
            # Clean up context
            clear_request_context()

        if tenant_id:
            response.headers[TENANT_RESPONSE_HEADER] = tenant_id
        return response

    def _identify_tenant(self, request: Request) -> Optional[str]:
        value = request.headers.get(CALLER_TENANT_HEADER, "").strip()
        return value or None

    def _is_platform_endpoint(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.platform_prefixes)
