"""
Credential Module

Per-tenant credential storage and tenant isolation.
"""

from .models import (
    ClientCredentials,
    ConfigurationSettingsResult,
    ConfigurationValue,
    RegistrationInfo,
    TenantCredentials,
)
from .store import CredentialStore, InMemoryCredentialStore

__all__ = [
    "ClientCredentials",
    "ConfigurationSettingsResult",
    "ConfigurationValue",
    "CredentialStore",
    "InMemoryCredentialStore",
    "RegistrationInfo",
    "TenantCredentials",
]
