"""
Gateway Configuration Management

Centralizes all configuration for the add-on gateway.
Supports multiple environments (local, dev, prod) with proper secret management.
"""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""

    LOCAL = "local"
    DEV = "dev"
    PROD = "prod"


class CredentialStoreBackend(str, Enum):
    """Available credential store backends."""

    MEMORY = "memory"
    MONGO = "mongo"


class GatewayConfig(BaseSettings):
    """
    Gateway-wide configuration settings.

    Loads from environment variables with .env file support.
    Key material is never configured here: api keys live in the credential
    store and public keys are fetched from the key set endpoint.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(default=Environment.LOCAL)

    # Audit & Logging
    log_level: str = Field(default="INFO")

    # CORS Configuration
    allowed_origins: str = Field(default="http://localhost:3000")

    # Provisioning API
    provisioning_endpoint: str = Field(
        default="http://localhost/integration/provision-instance"
    )
    webhook_sink_url: str = Field(default="http://localhost/integration/v1/webhooks")
    source_addon: str = Field(default="addon-gateway")
    integration_type: str = Field(default="deployment_production")
    webhook_endpoint: str = Field(default="/webhook/cloud")

    # Shared-secret (HMAC) scheme
    hmac_freshness_window_seconds: int = Field(default=300)

    # Public-key (JWS) scheme
    jws_key_set_url: str = Field(default="http://localhost:8080/.well-known/jwks.json")
    jws_issuer: Optional[str] = Field(default=None)
    jws_audience: Optional[str] = Field(default=None, validate_default=True)
    jws_tenant_claim: str = Field(default="tenantId")
    jws_algorithms: list[str] = Field(default_factory=lambda: ["RS256"])
    jws_leeway_seconds: int = Field(default=30, ge=0)
    jwks_cache_ttl_seconds: Optional[int] = Field(default=None)

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=10.0)
    http_max_connections: int = Field(default=20, ge=1)
    http_max_keepalive_connections: int = Field(default=10, ge=0)

    # Downstream proxy
    proxy_base_url: str = Field(default="http://localhost:80")
    proxy_route_prefix: str = Field(default="integration")
    proxy_default_extension: str = Field(default=".php")
    proxy_forward_header_prefix: str = Field(default="X-")
    proxy_health_path: str = Field(default="health-check")

    # Credential store
    credential_store_backend: CredentialStoreBackend = Field(
        default=CredentialStoreBackend.MEMORY
    )
    mongo_db_url: str = Field(default="mongodb://localhost:27017")
    mongo_db_name: str = Field(default="addon_gateway")

    @field_validator("hmac_freshness_window_seconds")
    @classmethod
    def validate_freshness_window(cls, v: int) -> int:
        """Ensure the freshness window is a positive number of seconds."""
        if v <= 0:
            raise ValueError("hmac_freshness_window_seconds must be positive")
        return v

    @field_validator("http_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Every outbound call carries a finite timeout."""
        if v <= 0:
            raise ValueError("http_timeout_seconds must be positive")
        return v

    @field_validator("proxy_default_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Normalize the default extension to start with a dot."""
        if v and not v.startswith("."):
            return f".{v}"
        return v

    @field_validator("jws_audience")
    @classmethod
    def validate_audience(cls, v: Optional[str], info) -> Optional[str]:
        """Ensure tokens are audience-bound in non-local environments."""
        env = info.data.get("environment", Environment.LOCAL)
        if env != Environment.LOCAL and not v:
            raise ValueError("jws_audience must be set in non-local environments")
        return v

    def get_allowed_origins_list(self) -> list[str]:
        """Parse CORS allowed origins into a list."""
        if self.environment == Environment.LOCAL:
            return ["*"]  # Allow all in local development
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def proxy_target_root(self) -> str:
        """Downstream URL that proxied paths are appended to."""
        prefix = self.proxy_route_prefix.strip("/")
        return f"{self.proxy_base_url.rstrip('/')}/{prefix}/"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PROD

    @property
    def is_local(self) -> bool:
        """Check if running in local development environment."""
        return self.environment == Environment.LOCAL


@lru_cache()
def get_config() -> GatewayConfig:
    """
    Get cached gateway configuration.

    Uses lru_cache to ensure config is loaded only once.
    """
    return GatewayConfig()
