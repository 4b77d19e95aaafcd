"""
Credential Database Service

MongoDB-backed credential store. Each tenant is a single document and every
write is a single-document atomic update, so writes for different tenants
never block each other.
"""

from datetime import datetime
from typing import Any, Optional

from pymongo import ASCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from structlog import get_logger

from .models import API_KEY_SETTING, ConfigurationValue, RegistrationInfo, TenantCredentials
from .store import CredentialStore, registration_from_payload

logger = get_logger()


def _strip_id(document: dict) -> dict:
    document = dict(document)
    document.pop("_id", None)
    return document


class MongoCredentialStore(CredentialStore):
    """
    Credential store over the gateway database.

    Uses the `tenant_credentials` and `registrations` collections.
    """

    def __init__(self, db: Database):
        """
        Initialize the store.

        Args:
            db: Gateway database handle
        """
        self.db = db
        self.collection: Collection = self.db["tenant_credentials"]
        self.registrations: Collection = self.db["registrations"]

    @classmethod
    def from_url(cls, url: str, db_name: str) -> "MongoCredentialStore":
        """
        Create a store with its own client.

        MongoClient connects lazily, so this performs no network I/O.
        """
        client = MongoClient(url)
        return cls(client[db_name])

    def ensure_indexes(self) -> None:
        """Create necessary indexes for the credential collections."""
        self.collection.create_indexes(
            [
                IndexModel([("tenant_id", ASCENDING)], unique=True),
                IndexModel([("updated_at", ASCENDING)]),
            ]
        )
        self.registrations.create_indexes(
            [IndexModel([("tenant_id", ASCENDING), ("app_id", ASCENDING)], unique=True)]
        )

    def _upsert(self, tenant_id: str, fields: dict[str, Any], unset: Optional[dict] = None) -> TenantCredentials:
        now = datetime.utcnow()
        update: dict[str, Any] = {
            "$set": {**fields, "updated_at": now},
            "$setOnInsert": {"tenant_id": tenant_id, "created_at": now},
        }
        if unset:
            update["$unset"] = unset

        document = self.collection.find_one_and_update(
            {"tenant_id": tenant_id},
            update,
            upsert=True,
            return_document=True,
        )
        return TenantCredentials(**_strip_id(document))

    def get(self, tenant_id: str) -> Optional[TenantCredentials]:
        document = self.collection.find_one({"tenant_id": tenant_id})
        if document:
            return TenantCredentials(**_strip_id(document))
        return None

    def upsert_registration(self, payload: dict[str, Any], tenant_id: str, app_id: str) -> RegistrationInfo:
        registration = registration_from_payload(payload, tenant_id, app_id)
        self.registrations.replace_one(
            {"tenant_id": tenant_id, "app_id": app_id},
            registration.model_dump(),
            upsert=True,
        )
        logger.info("registration_saved", tenant_id=tenant_id, app_id=app_id)
        return registration

    def get_registration(self, tenant_id: str, app_id: str) -> Optional[RegistrationInfo]:
        document = self.registrations.find_one({"tenant_id": tenant_id, "app_id": app_id})
        if document:
            return RegistrationInfo(**_strip_id(document))
        return None

    def remove_registrations(self) -> None:
        result = self.registrations.delete_many({})
        logger.info("registrations_removed", count=result.deleted_count)

    def upsert_account(
        self,
        tenant_id: str,
        region: Optional[str],
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> TenantCredentials:
        fields: dict[str, Any] = {"region": region}
        if client_id is not None:
            fields["client_id"] = client_id
        if client_secret is not None:
            fields["client_secret"] = client_secret

        saved = self._upsert(tenant_id, fields)
        logger.info("account_saved", tenant_id=tenant_id, region=region)
        return saved

    def upsert_webhook_url(self, tenant_id: str, url: str) -> TenantCredentials:
        saved = self._upsert(tenant_id, {"webhook_url": url})
        logger.info("webhook_url_saved", tenant_id=tenant_id)
        return saved

    def save_configuration(self, tenant_id: str, values: list[ConfigurationValue]) -> TenantCredentials:
        fields: dict[str, Any] = {}
        unset: dict[str, str] = {}
        for item in values:
            if item.id == API_KEY_SETTING:
                fields["api_key"] = str(item.value) if item.value not in (None, "") else None
            elif item.value is None:
                unset[f"settings.{item.id}"] = ""
            else:
                fields[f"settings.{item.id}"] = item.value

        saved = self._upsert(tenant_id, fields, unset=unset or None)
        logger.info("configuration_saved", tenant_id=tenant_id, settings=[v.id for v in values])
        return saved

    def remove(self, tenant_id: str) -> bool:
        result = self.collection.delete_one({"tenant_id": tenant_id})
        removed = result.deleted_count > 0
        logger.info("account_removed", tenant_id=tenant_id, existed=removed)
        return removed

    def remove_all(self) -> int:
        result = self.collection.delete_many({})
        logger.info("all_accounts_removed", count=result.deleted_count)
        return result.deleted_count

    def close(self) -> None:
        """Close the underlying MongoDB client."""
        self.db.client.close()
