"""Tests for the MongoDB credential store against mocked collections."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from addon_gateway.credentials.db_service import MongoCredentialStore
from addon_gateway.credentials.models import ConfigurationValue


@pytest.fixture
def collections():
    return {"tenant_credentials": MagicMock(), "registrations": MagicMock()}


@pytest.fixture
def mongo_store(collections):
    db = MagicMock()
    db.__getitem__.side_effect = collections.__getitem__
    return MongoCredentialStore(db)


def _document(**fields):
    now = datetime.utcnow()
    return {"_id": "object-id", "tenant_id": "tenant-1", "created_at": now, "updated_at": now, **fields}


class TestMongoCredentialStore:
    def test_get_strips_object_id(self, mongo_store, collections):
        collections["tenant_credentials"].find_one.return_value = _document(region="eu")

        record = mongo_store.get("tenant-1")

        assert record.region == "eu"
        collections["tenant_credentials"].find_one.assert_called_once_with({"tenant_id": "tenant-1"})

    def test_get_unknown_tenant(self, mongo_store, collections):
        collections["tenant_credentials"].find_one.return_value = None
        assert mongo_store.get("tenant-1") is None

    def test_upsert_account_is_single_atomic_update(self, mongo_store, collections):
        collection = collections["tenant_credentials"]
        collection.find_one_and_update.return_value = _document(region="eu", client_id="client-1")

        record = mongo_store.upsert_account("tenant-1", "eu", client_id="client-1")

        assert record.client_id == "client-1"
        (query, update), kwargs = collection.find_one_and_update.call_args
        assert query == {"tenant_id": "tenant-1"}
        assert update["$set"]["region"] == "eu"
        assert update["$set"]["client_id"] == "client-1"
        assert "client_secret" not in update["$set"]
        assert update["$setOnInsert"]["tenant_id"] == "tenant-1"
        assert kwargs["upsert"] is True

    def test_save_configuration_sets_and_unsets(self, mongo_store, collections):
        collection = collections["tenant_credentials"]
        collection.find_one_and_update.return_value = _document(api_key="key-1")

        mongo_store.save_configuration(
            "tenant-1",
            [
                ConfigurationValue(id="API_KEY", value="key-1"),
                ConfigurationValue(id="MODE", value="fast"),
                ConfigurationValue(id="OLD", value=None),
            ],
        )

        (_, update), _ = collection.find_one_and_update.call_args
        assert update["$set"]["api_key"] == "key-1"
        assert update["$set"]["settings.MODE"] == "fast"
        assert update["$unset"] == {"settings.OLD": ""}

    def test_remove_reports_existence(self, mongo_store, collections):
        collections["tenant_credentials"].delete_one.return_value = MagicMock(deleted_count=1)
        assert mongo_store.remove("tenant-1") is True

        collections["tenant_credentials"].delete_one.return_value = MagicMock(deleted_count=0)
        assert mongo_store.remove("tenant-1") is False

    def test_remove_all_counts(self, mongo_store, collections):
        collections["tenant_credentials"].delete_many.return_value = MagicMock(deleted_count=3)
        assert mongo_store.remove_all() == 3

    def test_registration_upsert_and_lookup(self, mongo_store, collections):
        registrations = collections["registrations"]

        mongo_store.upsert_registration({"clientCredentials": {"clientId": "c"}}, "dev-tenant", "app-1")

        (query, document), kwargs = registrations.replace_one.call_args
        assert query == {"tenant_id": "dev-tenant", "app_id": "app-1"}
        assert document["client_id"] == "c"
        assert kwargs["upsert"] is True

        registrations.find_one.return_value = {"_id": "x", **document}
        assert mongo_store.get_registration("dev-tenant", "app-1").client_id == "c"

    def test_ensure_indexes(self, mongo_store, collections):
        mongo_store.ensure_indexes()

        collections["tenant_credentials"].create_indexes.assert_called_once()
        collections["registrations"].create_indexes.assert_called_once()
