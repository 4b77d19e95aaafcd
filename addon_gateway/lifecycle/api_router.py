"""
Lifecycle API Router

Receives app lifecycle notifications from the cloud platform.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from structlog import get_logger

from ..auth.dependencies import get_services, read_signed_envelope, require_verified_identity
from ..auth.models import SignedEnvelope, VerifiedIdentity
from ..shared_services.services import GatewayServices
from ..shared_services.tenant_middleware import APP_HEADER, DEV_TENANT_HEADER
from .models import LifecycleOutcome, parse_lifecycle_event

logger = get_logger()

router = APIRouter(prefix="/v1", tags=["Lifecycle"])

OUTCOME_STATUS_CODES = {
    LifecycleOutcome.APPLIED: status.HTTP_200_OK,
    LifecycleOutcome.REJECTED: status.HTTP_403_FORBIDDEN,
    LifecycleOutcome.CONFIGURATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    LifecycleOutcome.DOWNSTREAM_FAILED: status.HTTP_502_BAD_GATEWAY,
    LifecycleOutcome.DOWNSTREAM_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.post(
    "/app-lifecycle",
    summary="Handle app lifecycle event",
    description="Apply a signed REGISTERED, INSTALLED, UNREGISTERED or UNINSTALLED event",
)
async def handle_lifecycle_event(
    envelope: SignedEnvelope = Depends(read_signed_envelope),
    identity: VerifiedIdentity = Depends(require_verified_identity),
    services: GatewayServices = Depends(get_services),
    dev_tenant_id: Optional[str] = Header(default=None, alias=DEV_TENANT_HEADER),
    app_id: Optional[str] = Header(default=None, alias=APP_HEADER),
) -> JSONResponse:
    """
    Handle a lifecycle event.

    The signature is verified before the body is parsed; the structured
    lifecycle result is returned with a status code matching its outcome.
    """
    try:
        event = parse_lifecycle_event(envelope.payload)
    except ValidationError as e:
        logger.warning("lifecycle_event_unparseable", tenant_id=identity.tenant_id, errors=e.error_count())
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unrecognized lifecycle event",
        )

    result = await run_in_threadpool(services.lifecycle.handle, event, identity, dev_tenant_id, app_id)

    if result.outcome == LifecycleOutcome.REJECTED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=result.detail or "Lifecycle event rejected",
        )

    return JSONResponse(
        status_code=OUTCOME_STATUS_CODES[result.outcome],
        content=result.model_dump(mode="json"),
    )
