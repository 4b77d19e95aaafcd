"""
Integration API Router

Status and connectivity checks for the downstream integration service.
"""

import json
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from structlog import get_logger

from ..auth.dependencies import get_services
from ..errors import DownstreamUnavailable, ProxyError
from ..shared_services.services import GatewayServices

logger = get_logger()

router = APIRouter(prefix="/v1/integration", tags=["Integration"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", summary="Integration health")
async def integration_health():
    """Report which integration features this gateway serves."""
    return {
        "status": "healthy",
        "timestamp": _now(),
        "integration": {
            "automaticProvisioning": True,
            "hmacAuthentication": True,
            "proxyEnabled": True,
        },
    }


@router.get("/test-connection", summary="Test downstream connectivity")
async def test_connection(services: GatewayServices = Depends(get_services)) -> JSONResponse:
    """Probe the downstream health path with the standard timeout."""
    logger.info("testing_downstream_connection")

    try:
        result = await run_in_threadpool(services.proxy.probe)
    except (DownstreamUnavailable, ProxyError) as e:
        logger.error("connection_test_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "status": "error",
                "message": "Could not connect to integration service",
                "error": str(e),
                "timestamp": _now(),
            },
        )

    if result.status_code >= 400:
        logger.warning("connection_test_failed", status_code=result.status_code)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "status": "error",
                "message": f"Integration service returned status: {result.status_code}",
                "timestamp": _now(),
            },
        )

    try:
        downstream = json.loads(result.body) if result.body else None
    except ValueError:
        downstream = result.body.decode("utf-8", "replace")

    logger.info("connection_test_succeeded")
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "success",
            "message": "Integration service is reachable and healthy",
            "serviceResponse": downstream,
            "timestamp": _now(),
        },
    )
