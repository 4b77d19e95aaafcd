"""
Proxy API Router

Passes requests under the proxy route prefix through to the downstream
integration service.
"""

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from ..auth.dependencies import get_services
from ..shared_services.services import GatewayServices

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def create_proxy_router(route_prefix: str) -> APIRouter:
    """
    Build the passthrough router for a route prefix.

    Connection failures surface as DownstreamUnavailable (502) and other
    transport failures as ProxyError (500) through the app's error handlers.
    """
    router = APIRouter(prefix=f"/{route_prefix.strip('/')}", tags=["Proxy"])

    @router.api_route("/{path:path}", methods=PROXY_METHODS, summary="Proxy to integration service")
    async def proxy(
        path: str,
        request: Request,
        services: GatewayServices = Depends(get_services),
    ) -> Response:
        body = await request.body()
        result = await run_in_threadpool(
            services.proxy.forward,
            request.method,
            path,
            request.url.query or None,
            request.headers,
            body,
        )
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.content_type,
        )

    return router
