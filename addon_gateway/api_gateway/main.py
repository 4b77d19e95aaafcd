"""
Main FastAPI Application

Add-on Gateway API with:
- Signed app lifecycle and webhook endpoints
- Tenant configuration endpoints
- Passthrough proxy to the integration service
- CORS configuration
- Health checks
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from structlog import get_logger

from ..config import GatewayConfig, get_config
from ..credentials.api_router import router as configuration_router
from ..errors import ConfigurationError, DownstreamUnavailable, ProxyError, SignatureValidationError
from ..lifecycle.api_router import router as lifecycle_router
from ..logging_config import configure_logging
from ..proxy.api_router import create_proxy_router
from ..proxy.integration_router import router as integration_router
from ..relay.api_router import router as webhook_router
from ..shared_services.services import GatewayServices
from ..shared_services.tenant_middleware import CallerTenantMiddleware

logger = get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the gateway services unless they were supplied up front, and
    releases them on shutdown.
    """
    config: GatewayConfig = app.state.config
    configure_logging(config.log_level, json_output=not config.is_local)
    logger.info("starting_addon_gateway", environment=config.environment.value)

    owns_services = app.state.services is None
    if owns_services:
        app.state.services = GatewayServices.build(config)

    logger.info("gateway_initialized")

    yield

    logger.info("shutting_down_gateway")
    if owns_services:
        app.state.services.close()
        app.state.services = None
    logger.info("gateway_shutdown_complete")


def register_exception_handlers(app: FastAPI) -> None:
    """Map gateway errors to HTTP responses."""

    @app.exception_handler(SignatureValidationError)
    async def signature_error_handler(request: Request, exc: SignatureValidationError):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc), "reason": exc.reason},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("configuration_error", tenant_id=exc.tenant_id, error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(DownstreamUnavailable)
    async def downstream_unavailable_handler(request: Request, exc: DownstreamUnavailable):
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": "Integration service unavailable"},
        )

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc)},
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc):
        """Custom 404 handler."""
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Resource not found", "path": str(request.url.path)},
        )


def create_app(config: Optional[GatewayConfig] = None, services: Optional[GatewayServices] = None) -> FastAPI:
    """
    Create the gateway application.

    Args:
        config: Gateway configuration; defaults to the cached environment config
        services: Prebuilt services; built in the lifespan if not provided
    """
    config = config or (services.config if services else get_config())

    app = FastAPI(
        title="Add-on Gateway",
        description="Authenticated forwarding between the cloud platform and an integration service",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if not config.is_production else None,
        redoc_url="/redoc" if not config.is_production else None,
        openapi_url="/openapi.json" if not config.is_production else None,
    )
    app.state.config = config
    app.state.services = services

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Resolve the claimed caller tenant
    app.add_middleware(CallerTenantMiddleware)

    @app.get("/health", tags=["Platform"], summary="Health check")
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "environment": config.environment.value,
            "version": VERSION,
        }

    @app.get("/v1/health", tags=["Platform"], summary="Add-on health check")
    async def addon_health_check():
        """Health endpoint polled by the cloud platform; any non-200 is a failure."""
        return {"status": "healthy"}

    @app.get("/ping", tags=["Platform"], summary="Ping endpoint")
    async def ping():
        """Simple ping endpoint."""
        return {"message": "pong"}

    register_exception_handlers(app)

    app.include_router(lifecycle_router)
    app.include_router(webhook_router)
    app.include_router(configuration_router)
    app.include_router(integration_router)
    app.include_router(create_proxy_router(config.proxy_route_prefix))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "addon_gateway.api_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=config.is_local,
        log_level=config.log_level.lower(),
    )
