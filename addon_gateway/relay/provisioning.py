"""
Provisioning Relay

Re-signs verified lifecycle events and forwards them to the provisioning API.

Every call is a single attempt on the shared pooled client; callers that need
resilience add their own retry layer.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError
from structlog import get_logger

from ..auth.models import VerifiedIdentity
from ..config import GatewayConfig
from ..credentials.models import TenantCredentials
from ..credentials.store import CredentialStore
from ..errors import ConfigurationError
from .schema import ProvisioningResponse, RelayOutcome, RelayStatus
from .signer import OutboundSigner

logger = get_logger()

UNINSTALL_PLACEHOLDER = "uninstall_placeholder"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_provisioning_payload(
    tenant_id: str,
    client_id: Optional[str],
    client_secret: Optional[str],
    event_type: str,
    **metadata: Any,
) -> dict[str, Any]:
    """Assemble the outbound provisioning body."""
    return {
        "tenantId": tenant_id,
        "clientCredentials": {
            "clientId": client_id,
            "clientSecret": client_secret,
        },
        "eventType": event_type,
        **metadata,
    }


def encode_body(payload: dict[str, Any]) -> bytes:
    """Serialize a payload to the exact bytes that get signed and sent."""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


class ProvisioningRelay:
    """Client for the external provisioning API."""

    def __init__(
        self,
        http_client: httpx.Client,
        signer: OutboundSigner,
        store: CredentialStore,
        config: GatewayConfig,
    ):
        self.http_client = http_client
        self.signer = signer
        self.store = store
        self.config = config

    def provision(self, tenant_id: str, identity: VerifiedIdentity) -> RelayOutcome:
        """
        Provision an integration instance for an installed tenant.

        Args:
            tenant_id: Installed tenant
            identity: Identity of the triggering inbound request

        Returns:
            Relay outcome; on success with a webhook url the tenant's stored
            url is updated

        Raises:
            ConfigurationError: If credentials are incomplete or the signing
                key is missing. No outbound call is made in that case.
        """
        credentials = self.store.get(tenant_id)
        if credentials is None or not credentials.is_complete:
            raise ConfigurationError(
                "Missing required client credentials for integration setup",
                tenant_id=tenant_id,
            )

        payload = build_provisioning_payload(
            tenant_id,
            credentials.client_id,
            credentials.client_secret,
            "INSTALLED",
            configurationData={},
            webhook_endpoint=self.config.webhook_endpoint,
            integration_type=self.config.integration_type,
            source_addon=self.config.source_addon,
            auto_provisioned=True,
            provisioned_at=_utc_now_iso(),
        )

        outcome = self._send(payload, identity, tenant_id)

        if outcome.succeeded:
            logger.info("integration_provisioned", tenant_id=tenant_id, instance_id=outcome.instance_id)
            if outcome.webhook_url:
                self.store.upsert_webhook_url(tenant_id, outcome.webhook_url)
        else:
            logger.error(
                "integration_provisioning_failed",
                tenant_id=tenant_id,
                status=outcome.status.value,
                error=outcome.error,
            )

        return outcome

    def notify_uninstall(self, tenant_id: str, identity: VerifiedIdentity) -> RelayOutcome:
        """
        Tell the provisioning API that a tenant uninstalled.

        Missing client credentials are replaced with placeholders so the
        notification can still be sent.

        Raises:
            ConfigurationError: If the signing key is missing
        """
        credentials: Optional[TenantCredentials] = self.store.get(tenant_id)
        payload = build_provisioning_payload(
            tenant_id,
            (credentials.client_id if credentials else None) or UNINSTALL_PLACEHOLDER,
            (credentials.client_secret if credentials else None) or UNINSTALL_PLACEHOLDER,
            "UNINSTALLED",
            timestamp=_utc_now_iso(),
        )
        return self._send(payload, identity, tenant_id)

    def _send(self, payload: dict[str, Any], identity: VerifiedIdentity, tenant_id: str) -> RelayOutcome:
        body = encode_body(payload)
        headers = {"Content-Type": "application/json"}
        headers.update(self.signer.sign(body, identity))

        url = self.config.provisioning_endpoint
        logger.info(
            "provisioning_call",
            url=url,
            tenant_id=tenant_id,
            event_type=payload.get("eventType"),
            scheme=identity.scheme.value,
        )

        try:
            response = self.http_client.post(url, content=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error("provisioning_unreachable", url=url, tenant_id=tenant_id, error=str(e))
            return RelayOutcome.unavailable(f"HTTP request failed: {e}")

        logger.info("provisioning_response", tenant_id=tenant_id, status_code=response.status_code)

        if not response.is_success:
            return RelayOutcome.unavailable(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            document = response.json()
            if not isinstance(document, dict):
                raise ValueError("Response is not a JSON object")
            parsed = ProvisioningResponse.from_json(document)
        except (ValueError, ValidationError) as e:
            return RelayOutcome(
                status=RelayStatus.FAILED,
                status_code=response.status_code,
                error=f"Unrecognized provisioning response: {e}",
                response_body=response.text,
            )

        return parsed.to_outcome(response)
