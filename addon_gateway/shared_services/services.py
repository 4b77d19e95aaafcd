"""
Gateway Services

Explicit container for the long-lived service objects. Built once at
start-up and held on `app.state`.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from structlog import get_logger

from ..auth.keyset import PublicKeySet
from ..auth.verifier import SignatureVerifier
from ..config import CredentialStoreBackend, GatewayConfig
from ..credentials.store import CredentialStore, InMemoryCredentialStore
from ..lifecycle.state_machine import LifecycleStateMachine
from ..proxy.forwarder import ProxyForwarder
from ..relay.provisioning import ProvisioningRelay
from ..relay.signer import OutboundSigner
from ..relay.webhooks import WebhookRelay
from .http_client import build_http_client

logger = get_logger()


def build_credential_store(config: GatewayConfig) -> CredentialStore:
    """Create the configured credential store backend."""
    if config.credential_store_backend == CredentialStoreBackend.MONGO:
        from ..credentials.db_service import MongoCredentialStore

        store = MongoCredentialStore.from_url(config.mongo_db_url, config.mongo_db_name)
        store.ensure_indexes()
        return store
    return InMemoryCredentialStore()


@dataclass
class GatewayServices:
    """All service objects one gateway process needs."""

    config: GatewayConfig
    http_client: httpx.Client
    store: CredentialStore
    key_set: PublicKeySet
    verifier: SignatureVerifier
    signer: OutboundSigner
    provisioning: ProvisioningRelay
    webhooks: WebhookRelay
    lifecycle: LifecycleStateMachine
    proxy: ProxyForwarder

    @classmethod
    def build(
        cls,
        config: GatewayConfig,
        http_client: Optional[httpx.Client] = None,
        credential_store: Optional[CredentialStore] = None,
    ) -> "GatewayServices":
        """
        Wire up every service.

        Args:
            config: Gateway configuration
            http_client: Shared client; built from config if not provided
            credential_store: Store; built from config if not provided
        """
        http_client = http_client or build_http_client(config)
        store = credential_store or build_credential_store(config)

        key_set = PublicKeySet(http_client, config.jws_key_set_url, ttl_seconds=config.jwks_cache_ttl_seconds)
        signer = OutboundSigner(store)
        provisioning = ProvisioningRelay(http_client, signer, store, config)

        services = cls(
            config=config,
            http_client=http_client,
            store=store,
            key_set=key_set,
            verifier=SignatureVerifier(store, key_set, config),
            signer=signer,
            provisioning=provisioning,
            webhooks=WebhookRelay(http_client, signer, store, config),
            lifecycle=LifecycleStateMachine(store, provisioning),
            proxy=ProxyForwarder(http_client, config),
        )

        logger.info(
            "gateway_services_built",
            store=type(store).__name__,
            timeout_seconds=config.http_timeout_seconds,
        )
        return services

    def close(self) -> None:
        """Release pooled connections."""
        self.http_client.close()
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            close_store()
