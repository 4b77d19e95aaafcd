"""
Webhook API Router

Receives platform webhook events and relays them downstream.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from structlog import get_logger

from ..auth.dependencies import get_services, read_signed_envelope, require_public_key_identity
from ..auth.models import SignedEnvelope, VerifiedIdentity
from ..shared_services.services import GatewayServices
from .schema import RelayStatus, WebhookEvent

logger = get_logger()

router = APIRouter(prefix="/v1", tags=["Webhooks"])


@router.post(
    "/webhooks",
    summary="Relay webhook event",
    description="Forward a platform-signed webhook event to the tenant's sink",
)
async def relay_webhook(
    envelope: SignedEnvelope = Depends(read_signed_envelope),
    identity: VerifiedIdentity = Depends(require_public_key_identity),
    services: GatewayServices = Depends(get_services),
) -> JSONResponse:
    """Relay one webhook event; only the public-key scheme is accepted."""
    try:
        event = WebhookEvent.model_validate_json(envelope.payload or b"{}")
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    outcome = await run_in_threadpool(services.webhooks.relay, event, identity, envelope.payload)

    if outcome.status == RelayStatus.SUCCEEDED:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={
                "success": True,
                "message": "Webhook processed successfully",
                "tenantId": identity.tenant_id,
                "eventType": event.event_type,
            },
        )

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": False,
            "message": "Webhook sink unavailable",
            "tenantId": identity.tenant_id,
            "error": outcome.error,
        },
    )
