"""
Authentication Dependencies

FastAPI dependencies that read the signed envelope off a request and verify
it before any handler logic runs.
"""

from typing import Optional

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool
from structlog import get_logger

from ..errors import ConfigurationError, GatewayError, SignatureValidationError
from ..shared_services.services import GatewayServices
from ..shared_services.tenant_middleware import CALLER_TENANT_HEADER
from .models import Rejection, RejectionReason, SignatureScheme, SignedEnvelope, VerifiedIdentity

logger = get_logger()


def get_services(request: Request) -> GatewayServices:
    """Dependency to get the gateway services built at start-up."""
    return request.app.state.services


def get_caller_tenant_id(request: Request) -> Optional[str]:
    """Caller tenant claimed by the request, as resolved by the middleware."""
    tenant_id = getattr(request.state, "tenant_id", None)
    if tenant_id:
        return tenant_id
    return request.headers.get(CALLER_TENANT_HEADER) or None


async def read_signed_envelope(request: Request) -> SignedEnvelope:
    """Capture the raw body and signature headers exactly as received."""
    body = await request.body()
    return SignedEnvelope.from_headers(body, request.headers)


def rejection_to_error(rejection: Rejection, tenant_id: Optional[str] = None) -> GatewayError:
    """Map a verification rejection to the error the API layer reports."""
    if rejection.is_configuration_error:
        return ConfigurationError(
            "API key not configured. Configure the API key in the add-on settings.",
            tenant_id=tenant_id,
        )
    return SignatureValidationError(f"Invalid signature: {rejection.detail}", reason=rejection.reason.value)


async def require_verified_identity(
    envelope: SignedEnvelope = Depends(read_signed_envelope),
    caller_tenant_id: Optional[str] = Depends(get_caller_tenant_id),
    services: GatewayServices = Depends(get_services),
) -> VerifiedIdentity:
    """
    Verify the request signature with whichever scheme it carries.

    Raises:
        SignatureValidationError: If the signature is rejected
        ConfigurationError: If the tenant's api key is not configured
    """
    result = await run_in_threadpool(services.verifier.verify, envelope, caller_tenant_id)
    if isinstance(result, Rejection):
        raise rejection_to_error(result, caller_tenant_id)
    return result


async def require_public_key_identity(
    identity: VerifiedIdentity = Depends(require_verified_identity),
) -> VerifiedIdentity:
    """Only accept requests signed with the platform's public-key token."""
    if identity.scheme != SignatureScheme.PUBLIC_KEY:
        logger.warning("scheme_not_allowed", tenant_id=identity.tenant_id, scheme=identity.scheme.value)
        raise SignatureValidationError(
            "Webhooks require the platform signature token",
            reason=RejectionReason.SCHEME_NOT_ALLOWED.value,
        )
    return identity
