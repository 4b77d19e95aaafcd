"""
Configuration API Router

Lets a verified tenant read and update its add-on configuration.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool
from structlog import get_logger

from ..auth.dependencies import get_services, read_signed_envelope, require_verified_identity
from ..auth.models import SignedEnvelope, VerifiedIdentity
from ..errors import ConfigurationError
from ..shared_services.services import GatewayServices
from .models import ConfigurationSettingsResult, ConfigurationValue

logger = get_logger()

router = APIRouter(prefix="/v1/configuration", tags=["Configuration"])

_configuration_values = TypeAdapter(list[ConfigurationValue])


@router.get(
    "",
    response_model=ConfigurationSettingsResult,
    response_model_by_alias=True,
    summary="Get configuration settings",
)
async def get_configuration(
    identity: VerifiedIdentity = Depends(require_verified_identity),
    services: GatewayServices = Depends(get_services),
) -> ConfigurationSettingsResult:
    """Return every configuration setting; secrets are masked."""
    logger.info("retrieving_configuration", tenant_id=identity.tenant_id)
    credentials = await run_in_threadpool(services.store.get, identity.tenant_id)
    return ConfigurationSettingsResult.from_credentials(credentials)


@router.post(
    "",
    response_model=ConfigurationSettingsResult,
    response_model_by_alias=True,
    summary="Save configuration settings",
)
async def save_configuration(
    envelope: SignedEnvelope = Depends(read_signed_envelope),
    identity: VerifiedIdentity = Depends(require_verified_identity),
    services: GatewayServices = Depends(get_services),
) -> ConfigurationSettingsResult:
    """Save or update configuration settings. API_KEY sets the signing key."""
    try:
        values = _configuration_values.validate_json(envelope.payload or b"[]")
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Expected a list of configuration values",
        )

    logger.info("saving_configuration", tenant_id=identity.tenant_id, count=len(values))
    credentials = await run_in_threadpool(services.store.save_configuration, identity.tenant_id, values)
    return ConfigurationSettingsResult.from_credentials(credentials)


@router.post("/validation", summary="Validate configuration settings")
async def validate_configuration(
    identity: VerifiedIdentity = Depends(require_verified_identity),
    services: GatewayServices = Depends(get_services),
) -> dict:
    """
    Validate the tenant's configuration and retry integration setup.

    Integration setup is best effort; a failure is logged and never fails
    the validation.
    """
    tenant_id = identity.tenant_id
    logger.info("validating_configuration", tenant_id=tenant_id)

    try:
        outcome = await run_in_threadpool(services.provisioning.provision, tenant_id, identity)
    except ConfigurationError as e:
        logger.error("integration_setup_failed", tenant_id=tenant_id, error=str(e))
        return {"valid": True, "integrationSetup": "skipped"}

    if not outcome.succeeded:
        logger.error("integration_setup_failed", tenant_id=tenant_id, error=outcome.error)
    return {"valid": True, "integrationSetup": outcome.status.value}
