"""
Outbound Signer

Authenticates outbound calls on behalf of a verified inbound identity.
"""

import time
from typing import Callable

from structlog import get_logger

from ..auth.hmac_signing import compute_signature, new_nonce
from ..auth.models import (
    NONCE_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    TOKEN_HEADER,
    SignatureScheme,
    VerifiedIdentity,
)
from ..credentials.store import CredentialStore
from ..errors import ConfigurationError

logger = get_logger()


class OutboundSigner:
    """
    Produces authentication headers for an outbound body.

    Shared-secret identities get a fresh timestamp, nonce and HMAC computed
    with the tenant's api key. Public-key identities forward the platform's
    original token unchanged: the relay asserts the platform's identity, not
    its own, and mints no signature of its own in that scheme.
    """

    def __init__(
        self,
        store: CredentialStore,
        clock: Callable[[], float] = time.time,
        nonce_factory: Callable[[], str] = new_nonce,
    ):
        self.store = store
        self._clock = clock
        self._nonce_factory = nonce_factory

    def sign(self, body: bytes, identity: VerifiedIdentity) -> dict[str, str]:
        """
        Build signature headers for an outbound request.

        Args:
            body: Exact bytes that will be sent
            identity: Identity established for the triggering inbound request

        Returns:
            Headers to attach to the outbound request

        Raises:
            ConfigurationError: If the key material for the scheme is missing
        """
        if identity.scheme == SignatureScheme.PUBLIC_KEY:
            if not identity.token:
                raise ConfigurationError("No inbound token to forward", tenant_id=identity.tenant_id)
            logger.info("forwarding_platform_token", tenant_id=identity.tenant_id)
            return {TOKEN_HEADER: identity.token}

        return self.sign_with_api_key(body, identity.tenant_id)

    def sign_with_api_key(self, body: bytes, tenant_id: str) -> dict[str, str]:
        """Sign a body with the tenant's api key."""
        credentials = self.store.get(tenant_id)
        api_key = credentials.api_key if credentials else None
        if not api_key:
            raise ConfigurationError(
                "API key not configured. Configure the API key in the add-on settings.",
                tenant_id=tenant_id,
            )

        timestamp = str(int(self._clock()))
        nonce = self._nonce_factory()
        signature = compute_signature(body, timestamp, nonce, api_key)

        logger.info("outbound_request_signed", tenant_id=tenant_id)
        return {
            SIGNATURE_HEADER: signature,
            TIMESTAMP_HEADER: timestamp,
            NONCE_HEADER: nonce,
        }
