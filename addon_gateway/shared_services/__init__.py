"""
Shared Services

Service container, outbound HTTP client and request middleware.
"""

from .http_client import build_http_client
from .services import GatewayServices, build_credential_store
from .tenant_middleware import CallerTenantMiddleware

__all__ = [
    "CallerTenantMiddleware",
    "GatewayServices",
    "build_credential_store",
    "build_http_client",
]
