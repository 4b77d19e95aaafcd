"""
Relay Module

Outbound signing and forwarding to the provisioning API and webhook sink.
"""

from .provisioning import ProvisioningRelay
from .schema import RelayOutcome, RelayStatus, WebhookEvent
from .signer import OutboundSigner
from .webhooks import WebhookRelay

__all__ = [
    "OutboundSigner",
    "ProvisioningRelay",
    "RelayOutcome",
    "RelayStatus",
    "WebhookEvent",
    "WebhookRelay",
]
