"""
Webhook Relay

Forwards verified webhook events from the cloud platform to the downstream
sink, passing the platform's token through.
"""

import json
from datetime import datetime, timezone
from typing import Any

import httpx
from structlog import get_logger

from ..auth.models import SignatureScheme, VerifiedIdentity
from ..config import GatewayConfig
from ..credentials.store import CredentialStore
from ..errors import ConfigurationError
from .provisioning import encode_body
from .schema import RelayOutcome, RelayStatus, WebhookEvent
from .signer import OutboundSigner

logger = get_logger()

SOURCE_HEADER = "X-Source"


class WebhookRelay:
    """Relays webhook events to the tenant's downstream sink."""

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

    def target_for(self, tenant_id: str) -> str:
        """The tenant's stored webhook url, else the configured sink."""
        credentials = self.store.get(tenant_id)
        if credentials and credentials.webhook_url:
            return credentials.webhook_url
        return self.config.webhook_sink_url

    def build_payload(self, event: WebhookEvent, identity: VerifiedIdentity, raw_payload: bytes) -> dict[str, Any]:
        try:
            original = json.loads(raw_payload) if raw_payload else None
        except ValueError:
            original = raw_payload.decode("utf-8", "replace")

        return {
            "accountId": identity.tenant_id,
            "eventType": event.event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": original,
            "originalPayload": original,
            "source": self.config.source_addon,
        }

    def relay(self, event: WebhookEvent, identity: VerifiedIdentity, raw_payload: bytes) -> RelayOutcome:
        """
        Forward one webhook event. Single attempt, no retry.

        Args:
            event: Parsed webhook event
            identity: Public-key identity of the inbound request
            raw_payload: Inbound body as received

        Returns:
            SUCCEEDED on a 2xx from the sink, DOWNSTREAM_UNAVAILABLE otherwise
        """
        if identity.scheme != SignatureScheme.PUBLIC_KEY:
            raise ConfigurationError(
                "Webhook relay requires a public-key identity",
                tenant_id=identity.tenant_id,
            )

        url = self.target_for(identity.tenant_id)
        body = encode_body(self.build_payload(event, identity, raw_payload))
        headers = {"Content-Type": "application/json", SOURCE_HEADER: self.config.source_addon}
        headers.update(self.signer.sign(body, identity))

        try:
            response = self.http_client.post(url, content=body, headers=headers)
        except httpx.HTTPError as e:
            outcome = RelayOutcome.unavailable(f"HTTP request failed: {e}")
        else:
            if response.is_success:
                outcome = RelayOutcome(
                    status=RelayStatus.SUCCEEDED,
                    status_code=response.status_code,
                    response_body=response.text,
                )
            else:
                outcome = RelayOutcome.unavailable(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                )

        # Audit trail for every relayed event
        logger.info(
            "webhook_relayed",
            tenant_id=identity.tenant_id,
            event_type=event.event_type,
            url=url,
            status=outcome.status.value,
            status_code=outcome.status_code,
            error=outcome.error,
        )
        return outcome
