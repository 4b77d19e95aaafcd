"""
Lifecycle Event Models

Lifecycle events are a tagged union discriminated by the `id` field.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..credentials.models import ClientCredentials
from ..relay.schema import RelayOutcome


class LifecycleEventType(str, Enum):
    """Lifecycle notifications sent by the cloud platform."""

    REGISTERED = "REGISTERED"
    INSTALLED = "INSTALLED"
    UNREGISTERED = "UNREGISTERED"
    UNINSTALLED = "UNINSTALLED"


class LifecycleState(str, Enum):
    """Add-on lifecycle states."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    INSTALLED = "installed"
    UNINSTALLED = "uninstalled"


class LifecycleOutcome(str, Enum):
    """How handling a lifecycle event ended."""

    APPLIED = "applied"
    REJECTED = "rejected"
    CONFIGURATION_ERROR = "configuration_error"
    DOWNSTREAM_FAILED = "downstream_failed"
    DOWNSTREAM_UNAVAILABLE = "downstream_unavailable"


class RegistrationData(BaseModel):
    """Registration metadata; unknown fields are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    client_credentials: Optional[ClientCredentials] = Field(default=None, alias="clientCredentials")


class InstallationData(BaseModel):
    """Installation details for a tenant."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    region: Optional[str] = Field(default=None)
    client_credentials: Optional[ClientCredentials] = Field(default=None, alias="clientCredentials")


class _LifecycleEventBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timestamp: Optional[str] = Field(default=None)


class RegisteredEvent(_LifecycleEventBase):
    id: Literal["REGISTERED"]
    data: RegistrationData = Field(default_factory=RegistrationData)


class InstalledEvent(_LifecycleEventBase):
    id: Literal["INSTALLED"]
    data: InstallationData = Field(default_factory=InstallationData)


class UnregisteredEvent(_LifecycleEventBase):
    id: Literal["UNREGISTERED"]


class UninstalledEvent(_LifecycleEventBase):
    id: Literal["UNINSTALLED"]


LifecycleEvent = Annotated[
    Union[RegisteredEvent, InstalledEvent, UnregisteredEvent, UninstalledEvent],
    Field(discriminator="id"),
]

lifecycle_event_adapter = TypeAdapter(LifecycleEvent)


def parse_lifecycle_event(raw: bytes) -> LifecycleEvent:
    """
    Parse a verified request body into its lifecycle variant.

    Raises:
        pydantic.ValidationError: If the body is not a known lifecycle event
    """
    return lifecycle_event_adapter.validate_json(raw)


class LifecycleResult(BaseModel):
    """Structured result reported back to the caller."""

    event: LifecycleEventType
    tenant_id: Optional[str] = Field(default=None)
    outcome: LifecycleOutcome
    state: LifecycleState
    relay: Optional[RelayOutcome] = Field(default=None)
    detail: Optional[str] = Field(default=None)
