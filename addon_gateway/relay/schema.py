"""
Relay Schemas

Outbound payload shapes and the structured outcome of a relay call.
"""

from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, StrictBool


class RelayStatus(str, Enum):
    """Outcome of a single outbound relay attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"  # Downstream answered with success: false
    DOWNSTREAM_UNAVAILABLE = "downstream_unavailable"  # Transport error or non-2xx


class RelayOutcome(BaseModel):
    """Structured result of a relay call."""

    status: RelayStatus
    status_code: Optional[int] = Field(default=None)
    instance_id: Optional[str] = Field(default=None)
    webhook_url: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)
    response_body: Optional[str] = Field(default=None)

    @property
    def succeeded(self) -> bool:
        return self.status == RelayStatus.SUCCEEDED

    @classmethod
    def unavailable(cls, error: str, status_code: Optional[int] = None, body: Optional[str] = None) -> "RelayOutcome":
        return cls(
            status=RelayStatus.DOWNSTREAM_UNAVAILABLE,
            status_code=status_code,
            error=error,
            response_body=body,
        )


class ProvisioningResponse(BaseModel):
    """
    Response from the provisioning API.

    Accepts both the camelCase fields and the snake_case/nested form
    (`instance_id`, `webhook_config.webhook_url`).
    """

    model_config = ConfigDict(extra="ignore")

    success: StrictBool
    instance_id: Optional[str] = Field(default=None)
    webhook_url: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)

    @classmethod
    def from_json(cls, document: dict[str, Any]) -> "ProvisioningResponse":
        webhook_config = document.get("webhook_config")
        nested_url = webhook_config.get("webhook_url") if isinstance(webhook_config, dict) else None
        return cls(
            success=document.get("success"),
            instance_id=document.get("instanceId") or document.get("instance_id"),
            webhook_url=document.get("webhookUrl") or nested_url,
            error=document.get("error"),
        )

    def to_outcome(self, response: httpx.Response) -> RelayOutcome:
        return RelayOutcome(
            status=RelayStatus.SUCCEEDED if self.success else RelayStatus.FAILED,
            status_code=response.status_code,
            instance_id=self.instance_id,
            webhook_url=self.webhook_url,
            error=self.error,
            response_body=response.text,
        )


class WebhookEvent(BaseModel):
    """Inbound webhook event from the cloud platform."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_type: str = Field(default="UNKNOWN", alias="eventType")
    event_data: Any = Field(default=None, alias="eventData")
    timestamp: Optional[str] = Field(default=None)
