"""
Credential Data Models

Defines the per-tenant credential record and the app registration record
held by the credential store.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

API_KEY_SETTING = "API_KEY"
SECRET_MASK = "*****"


class ClientCredentials(BaseModel):
    """Client id/secret pair issued by the cloud platform."""

    model_config = ConfigDict(populate_by_name=True)

    client_id: Optional[str] = Field(default=None, alias="clientId")
    client_secret: Optional[str] = Field(default=None, alias="clientSecret")


class TenantCredentials(BaseModel):
    """
    Credential record for a single tenant.

    Owned exclusively by the credential store; callers only ever see copies.
    """

    tenant_id: str = Field(..., description="Unique tenant identifier")
    region: Optional[str] = Field(default=None, description="Region the tenant was installed in")

    # Platform-issued client credentials
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)

    # Shared-secret scheme only
    api_key: Optional[str] = Field(default=None, description="HMAC signing key")

    webhook_url: Optional[str] = Field(default=None, description="Downstream webhook sink")

    # Other saved configuration values
    settings: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_complete(self) -> bool:
        """True iff client id, client secret and tenant id are all non-empty."""
        return bool(self.client_id) and bool(self.client_secret) and bool(self.tenant_id)


class RegistrationInfo(BaseModel):
    """App registration record, keyed by tenant id and app id."""

    tenant_id: str
    app_id: str
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)
    registered_at: datetime = Field(default_factory=datetime.utcnow)


class ConfigurationValue(BaseModel):
    """A single configuration setting as exchanged with the cloud platform."""

    id: str = Field(..., description="Setting identifier, e.g. API_KEY")
    value: Any = Field(default=None)


class ConfigurationSettingsResult(BaseModel):
    """Configuration settings for a tenant, with secrets masked."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[ConfigurationValue] = Field(default_factory=list)
    item_count: int = Field(default=0, alias="itemCount")

    @classmethod
    def from_credentials(cls, credentials: Optional[TenantCredentials]) -> "ConfigurationSettingsResult":
        """Build the masked view of a tenant's configuration."""
        if credentials is None:
            return cls(items=[], item_count=0)

        items = []
        if credentials.api_key:
            items.append(ConfigurationValue(id=API_KEY_SETTING, value=SECRET_MASK))
        for key, value in sorted(credentials.settings.items()):
            items.append(ConfigurationValue(id=key, value=value))

        return cls(items=items, item_count=len(items))
