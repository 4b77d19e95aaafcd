"""
Credential Store

Per-tenant record of identity and secret material. Every operation is keyed
by tenant id; no operation reads or writes another tenant's record.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from structlog import get_logger

from .models import API_KEY_SETTING, ConfigurationValue, RegistrationInfo, TenantCredentials

logger = get_logger()


def registration_from_payload(payload: dict[str, Any], tenant_id: str, app_id: str) -> RegistrationInfo:
    """Split a REGISTERED payload into client credentials and free-form metadata."""
    metadata = dict(payload or {})
    credentials = metadata.pop("clientCredentials", None) or {}
    return RegistrationInfo(
        tenant_id=tenant_id,
        app_id=app_id,
        client_id=credentials.get("clientId"),
        client_secret=credentials.get("clientSecret"),
        metadata=metadata,
    )


class CredentialStore(ABC):
    """Contract shared by all credential store backends."""

    @abstractmethod
    def get(self, tenant_id: str) -> Optional[TenantCredentials]:
        """Return a copy of the tenant's record, or None if unknown."""

    @abstractmethod
    def upsert_registration(self, payload: dict[str, Any], tenant_id: str, app_id: str) -> RegistrationInfo:
        """Persist registration metadata keyed by tenant id and app id."""

    @abstractmethod
    def get_registration(self, tenant_id: str, app_id: str) -> Optional[RegistrationInfo]:
        """Return the registration for a tenant/app pair, or None."""

    @abstractmethod
    def remove_registrations(self) -> None:
        """Remove every registration record."""

    @abstractmethod
    def upsert_account(
        self,
        tenant_id: str,
        region: Optional[str],
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> TenantCredentials:
        """Create or update the tenant's region and client credentials."""

    @abstractmethod
    def upsert_webhook_url(self, tenant_id: str, url: str) -> TenantCredentials:
        """Set the tenant's downstream webhook url."""

    @abstractmethod
    def save_configuration(self, tenant_id: str, values: list[ConfigurationValue]) -> TenantCredentials:
        """Save configuration values; API_KEY sets the signing key."""

    @abstractmethod
    def remove(self, tenant_id: str) -> bool:
        """Remove a tenant's record. Returns False if it did not exist."""

    @abstractmethod
    def remove_all(self) -> int:
        """Remove every tenant record. Returns the number removed."""


def apply_configuration(record: TenantCredentials, values: list[ConfigurationValue]) -> None:
    """Fold configuration values into a record in place."""
    for item in values:
        if item.id == API_KEY_SETTING:
            record.api_key = str(item.value) if item.value not in (None, "") else None
        elif item.value is None:
            record.settings.pop(item.id, None)
        else:
            record.settings[item.id] = item.value


class InMemoryCredentialStore(CredentialStore):
    """
    Process-local credential store.

    Writes take a lock private to the tenant being written, so concurrent
    writes for different tenants never contend. Reads take no lock and return
    deep copies.
    """

    def __init__(self):
        self._records: dict[str, TenantCredentials] = {}
        self._registrations: dict[tuple[str, str], RegistrationInfo] = {}
        self._tenant_locks: dict[str, threading.Lock] = {}
        # Guards creation of per-tenant locks and whole-store clears only
        self._guard = threading.Lock()

    def _lock_for(self, tenant_id: str) -> threading.Lock:
        lock = self._tenant_locks.get(tenant_id)
        if lock is None:
            with self._guard:
                lock = self._tenant_locks.setdefault(tenant_id, threading.Lock())
        return lock

    def _load_for_write(self, tenant_id: str) -> TenantCredentials:
        existing = self._records.get(tenant_id)
        if existing is None:
            return TenantCredentials(tenant_id=tenant_id)
        return existing.model_copy(deep=True)

    def _commit(self, record: TenantCredentials) -> TenantCredentials:
        record.updated_at = datetime.utcnow()
        self._records[record.tenant_id] = record
        return record.model_copy(deep=True)

    def get(self, tenant_id: str) -> Optional[TenantCredentials]:
        record = self._records.get(tenant_id)
        if record is None:
            return None
        return record.model_copy(deep=True)

    def upsert_registration(self, payload: dict[str, Any], tenant_id: str, app_id: str) -> RegistrationInfo:
        registration = registration_from_payload(payload, tenant_id, app_id)
        with self._lock_for(tenant_id):
            self._registrations[(tenant_id, app_id)] = registration
        logger.info("registration_saved", tenant_id=tenant_id, app_id=app_id)
        return registration.model_copy(deep=True)

    def get_registration(self, tenant_id: str, app_id: str) -> Optional[RegistrationInfo]:
        registration = self._registrations.get((tenant_id, app_id))
        if registration is None:
            return None
        return registration.model_copy(deep=True)

    def remove_registrations(self) -> None:
        with self._guard:
            self._registrations.clear()
        logger.info("registrations_removed")

    def upsert_account(
        self,
        tenant_id: str,
        region: Optional[str],
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> TenantCredentials:
        with self._lock_for(tenant_id):
            record = self._load_for_write(tenant_id)
            record.region = region
            if client_id is not None:
                record.client_id = client_id
            if client_secret is not None:
                record.client_secret = client_secret
            saved = self._commit(record)
        logger.info("account_saved", tenant_id=tenant_id, region=region)
        return saved

    def upsert_webhook_url(self, tenant_id: str, url: str) -> TenantCredentials:
        with self._lock_for(tenant_id):
            record = self._load_for_write(tenant_id)
            record.webhook_url = url
            saved = self._commit(record)
        logger.info("webhook_url_saved", tenant_id=tenant_id)
        return saved

    def save_configuration(self, tenant_id: str, values: list[ConfigurationValue]) -> TenantCredentials:
        with self._lock_for(tenant_id):
            record = self._load_for_write(tenant_id)
            apply_configuration(record, values)
            saved = self._commit(record)
        logger.info("configuration_saved", tenant_id=tenant_id, settings=[v.id for v in values])
        return saved

    def remove(self, tenant_id: str) -> bool:
        with self._lock_for(tenant_id):
            removed = self._records.pop(tenant_id, None) is not None
        logger.info("account_removed", tenant_id=tenant_id, existed=removed)
        return removed

    def remove_all(self) -> int:
        with self._guard:
            count = len(self._records)
            self._records.clear()
            self._tenant_locks.clear()
        logger.info("all_accounts_removed", count=count)
        return count
