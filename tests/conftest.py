"""Shared test fixtures."""

import base64
import json
import time
from typing import Any, Callable, Optional

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt

from addon_gateway.auth.hmac_signing import compute_signature
from addon_gateway.auth.models import (
    NONCE_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    SignatureScheme,
    VerifiedIdentity,
)
from addon_gateway.config import Environment, GatewayConfig
from addon_gateway.credentials.models import ConfigurationValue
from addon_gateway.credentials.store import InMemoryCredentialStore
from addon_gateway.shared_services.http_client import build_http_client
from addon_gateway.shared_services.services import GatewayServices

ISSUER = "https://platform.test"
AUDIENCE = "addon-gateway"
JWKS_URL = "https://platform.test/.well-known/jwks.json"
PROVISIONING_URL = "https://integration.test/integration/provision-instance"
WEBHOOK_SINK_URL = "https://integration.test/integration/v1/webhooks"
PROXY_BASE_URL = "http://downstream.test"
KEY_ID = "platform-key-1"


def _generate_rsa_pem() -> tuple[str, str]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return private_pem, public_pem


def public_jwk(public_pem: str, kid: str) -> dict[str, Any]:
    """JWK for an RSA public key, tagged with a key id."""
    return {**jwk.construct(public_pem, "RS256").to_dict(), "kid": kid}


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def hmac_headers(
    body: bytes,
    api_key: str,
    timestamp: Optional[int] = None,
    nonce: str = "0123456789abcdef",
) -> dict[str, str]:
    """Shared-secret signature headers for a body."""
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return {
        SIGNATURE_HEADER: compute_signature(body, ts, nonce, api_key),
        TIMESTAMP_HEADER: ts,
        NONCE_HEADER: nonce,
    }


class FakeDownstream:
    """
    Request handler for httpx.MockTransport.

    Serves the key set, the provisioning API, the webhook sink and the proxied
    integration service, and records every request it sees.
    """

    def __init__(self, jwks: dict[str, Any]):
        self.jwks = jwks
        self.requests: list[httpx.Request] = []
        self.jwks_handler: Optional[Callable[[httpx.Request], httpx.Response]] = None
        self.provisioning_handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200,
            json={
                "success": True,
                "instanceId": "instance-1",
                "webhookUrl": "https://integration.test/hooks/instance-1",
            },
        )
        self.webhook_handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"received": True}
        )
        self.proxy_handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"status": "ok"}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url == JWKS_URL:
            if self.jwks_handler is not None:
                return self.jwks_handler(request)
            return httpx.Response(200, json=self.jwks)
        if url == PROVISIONING_URL:
            return self.provisioning_handler(request)
        if url.startswith(PROXY_BASE_URL):
            return self.proxy_handler(request)
        return self.webhook_handler(request)

    def requests_to(self, prefix: str) -> list[httpx.Request]:
        return [request for request in self.requests if str(request.url).startswith(prefix)]


@pytest.fixture(scope="session")
def rsa_keys() -> tuple[str, str]:
    """(private PEM, public PEM) for the platform signing key."""
    return _generate_rsa_pem()


@pytest.fixture
def jwks(rsa_keys) -> dict[str, Any]:
    return {"keys": [public_jwk(rsa_keys[1], KEY_ID)]}


@pytest.fixture
def make_token(rsa_keys) -> Callable[..., str]:
    """Mint platform tokens; keyword overrides replace default claims."""

    def _make_token(
        tenant_id: str = "tenant-1",
        kid: str = KEY_ID,
        private_pem: Optional[str] = None,
        **overrides: Any,
    ) -> str:
        now = int(time.time())
        claims = {
            "tenantId": tenant_id,
            "iss": ISSUER,
            "aud": AUDIENCE,
            "iat": now,
            "exp": now + 300,
        }
        claims.update(overrides)
        claims = {key: value for key, value in claims.items() if value is not None}
        return jwt.encode(claims, private_pem or rsa_keys[0], algorithm="RS256", headers={"kid": kid})

    return _make_token


@pytest.fixture
def config() -> GatewayConfig:
    return GatewayConfig(
        environment=Environment.LOCAL,
        provisioning_endpoint=PROVISIONING_URL,
        webhook_sink_url=WEBHOOK_SINK_URL,
        jws_key_set_url=JWKS_URL,
        jws_issuer=ISSUER,
        jws_audience=AUDIENCE,
        proxy_base_url=PROXY_BASE_URL,
        http_timeout_seconds=5.0,
    )


@pytest.fixture
def downstream(jwks) -> FakeDownstream:
    return FakeDownstream(jwks)


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def services(config, downstream, store) -> GatewayServices:
    http_client = build_http_client(config, transport=httpx.MockTransport(downstream))
    services = GatewayServices.build(config, http_client=http_client, credential_store=store)
    yield services
    services.close()


@pytest.fixture
def client(services) -> TestClient:
    from addon_gateway.api_gateway.main import create_app

    app = create_app(services=services)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def installed_tenant(store) -> str:
    """A tenant with complete client credentials and an api key."""
    store.upsert_account("tenant-1", "eu", client_id="client-1", client_secret="secret-1")
    store.save_configuration("tenant-1", [ConfigurationValue(id="API_KEY", value="api-key-1")])
    return "tenant-1"


@pytest.fixture
def token_identity(make_token) -> VerifiedIdentity:
    return VerifiedIdentity(
        tenant_id="tenant-1",
        scheme=SignatureScheme.PUBLIC_KEY,
        token=make_token(),
        claims={"tenantId": "tenant-1"},
    )


@pytest.fixture
def hmac_identity() -> VerifiedIdentity:
    return VerifiedIdentity(tenant_id="tenant-1", scheme=SignatureScheme.SHARED_SECRET)


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content)
