"""
Signature Verifier

Verifies inbound signed requests with either the shared-secret (HMAC) scheme
or the public-key (compact JWS) scheme. Verification never mutates state and
never raises for a bad request; it returns a VerifiedIdentity or a Rejection.
"""

import json
import time
from typing import Any, Callable, Optional, Union

from jose import jws
from jose.exceptions import JOSEError
from jose.utils import base64url_decode
from structlog import get_logger

from ..config import GatewayConfig
from ..credentials.store import CredentialStore
from ..errors import DownstreamUnavailable
from .hmac_signing import compute_signature, is_fresh, signatures_match
from .keyset import PublicKeySet
from .models import (
    Rejection,
    RejectionReason,
    SignatureScheme,
    SignedEnvelope,
    VerificationResult,
    VerifiedIdentity,
)

logger = get_logger()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SignatureVerifier:
    """Selects a verification strategy from the envelope's header shape."""

    def __init__(
        self,
        store: CredentialStore,
        key_set: PublicKeySet,
        config: GatewayConfig,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the verifier.

        Args:
            store: Credential store, consulted for api keys (shared-secret only)
            key_set: Public key cache (public-key only)
            config: Gateway configuration
            clock: Wall clock in unix seconds
        """
        self.store = store
        self.key_set = key_set
        self.config = config
        self._clock = clock

    def verify(self, envelope: SignedEnvelope, claimed_tenant_id: Optional[str] = None) -> VerificationResult:
        """
        Verify an envelope.

        Args:
            envelope: Payload and signature material
            claimed_tenant_id: Tenant resolved out-of-band by the caller's
                authorization layer; required for the shared-secret scheme

        Returns:
            VerifiedIdentity on success, Rejection otherwise
        """
        scheme = envelope.scheme

        if scheme == SignatureScheme.PUBLIC_KEY:
            result = self.verify_token(envelope.token, claimed_tenant_id)
        elif scheme == SignatureScheme.SHARED_SECRET:
            result = self.verify_shared_secret(envelope, claimed_tenant_id)
        else:
            result = Rejection(
                reason=RejectionReason.MISSING_SIGNATURE,
                detail="No signature headers present",
            )

        if isinstance(result, Rejection):
            logger.warning(
                "signature_rejected",
                scheme=scheme.value if scheme else None,
                reason=result.reason.value,
                detail=result.detail,
                claimed_tenant_id=claimed_tenant_id,
            )
        else:
            logger.info("signature_verified", scheme=result.scheme.value, tenant_id=result.tenant_id)

        return result

    def verify_shared_secret(self, envelope: SignedEnvelope, claimed_tenant_id: Optional[str]) -> VerificationResult:
        """
        Verify the HMAC-SHA256 signature over payload, timestamp and nonce.

        Replay is bounded by timestamp age only; nonces are not remembered.
        """
        if not envelope.signature or not envelope.timestamp or not envelope.nonce:
            return Rejection(
                reason=RejectionReason.MISSING_SIGNATURE,
                detail="Signature, timestamp and nonce headers are all required",
            )

        if not claimed_tenant_id:
            return Rejection(
                reason=RejectionReason.UNKNOWN_TENANT,
                detail="Shared-secret requests require a resolved tenant",
            )

        credentials = self.store.get(claimed_tenant_id)
        if credentials is None or not credentials.api_key:
            return Rejection(
                reason=RejectionReason.API_KEY_NOT_CONFIGURED,
                detail="No api key configured for tenant",
            )

        try:
            timestamp = int(envelope.timestamp)
        except ValueError:
            return Rejection(reason=RejectionReason.INVALID_TIMESTAMP, detail="Timestamp is not an integer")

        if not is_fresh(timestamp, self.config.hmac_freshness_window_seconds, now=self._clock()):
            return Rejection(
                reason=RejectionReason.STALE_TIMESTAMP,
                detail="Timestamp outside freshness window",
            )

        expected = compute_signature(envelope.payload, envelope.timestamp, envelope.nonce, credentials.api_key)
        if not signatures_match(expected, envelope.signature):
            return Rejection(reason=RejectionReason.INVALID_SIGNATURE, detail="Signature mismatch")

        return VerifiedIdentity(tenant_id=claimed_tenant_id, scheme=SignatureScheme.SHARED_SECRET)

    def verify_token(self, token: Optional[str], claimed_tenant_id: Optional[str] = None) -> VerificationResult:
        """
        Verify a compact JWS and then its claims.

        Claims are decoded only after the signature has been validated.
        """
        segments = (token or "").split(".")
        if len(segments) != 3 or not all(segments):
            return Rejection(reason=RejectionReason.MALFORMED_TOKEN, detail="Expected three segments")

        try:
            header = json.loads(base64url_decode(segments[0].encode("ascii")))
        except ValueError:
            return Rejection(reason=RejectionReason.MALFORMED_TOKEN, detail="Header is not valid JSON")
        if not isinstance(header, dict):
            return Rejection(reason=RejectionReason.MALFORMED_TOKEN, detail="Header is not an object")

        algorithm = header.get("alg")
        if not isinstance(algorithm, str) or algorithm not in self.config.jws_algorithms:
            return Rejection(
                reason=RejectionReason.UNSUPPORTED_ALGORITHM,
                detail=f"Algorithm {algorithm!r} not allowed",
            )

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            return Rejection(reason=RejectionReason.UNKNOWN_KEY_ID, detail="Header has no string key id")

        try:
            key = self.key_set.get_key(kid)
        except DownstreamUnavailable as e:
            return Rejection(reason=RejectionReason.KEY_SET_UNAVAILABLE, detail=str(e))
        if key is None:
            return Rejection(reason=RejectionReason.UNKNOWN_KEY_ID, detail=f"Unknown key id {kid!r}")

        # Issuers may omit alg from the JWK; the header's alg was checked above
        jwk = {**key, "alg": key.get("alg", algorithm)}
        try:
            payload = jws.verify(token, jwk, algorithms=[algorithm])
        except JOSEError as e:
            return Rejection(reason=RejectionReason.INVALID_SIGNATURE, detail=str(e))

        try:
            claims = json.loads(payload)
        except ValueError:
            return Rejection(reason=RejectionReason.INVALID_CLAIMS, detail="Payload is not valid JSON")
        if not isinstance(claims, dict):
            return Rejection(reason=RejectionReason.INVALID_CLAIMS, detail="Payload is not an object")

        tenant_or_rejection = self._validate_claims(claims, claimed_tenant_id)
        if isinstance(tenant_or_rejection, Rejection):
            return tenant_or_rejection

        return VerifiedIdentity(
            tenant_id=tenant_or_rejection,
            scheme=SignatureScheme.PUBLIC_KEY,
            token=token,
            claims=claims,
        )

    def _validate_claims(self, claims: dict[str, Any], claimed_tenant_id: Optional[str]) -> Union[str, Rejection]:
        """Check registered claims and return the tenant id they assert."""
        now = self._clock()
        leeway = self.config.jws_leeway_seconds

        exp = claims.get("exp")
        if not _is_number(exp):
            return Rejection(reason=RejectionReason.INVALID_CLAIMS, detail="Missing or invalid exp")
        if now > exp + leeway:
            return Rejection(reason=RejectionReason.TOKEN_EXPIRED, detail="Token has expired")

        iat = claims.get("iat")
        if not _is_number(iat):
            return Rejection(reason=RejectionReason.INVALID_CLAIMS, detail="Missing or invalid iat")
        if iat > now + leeway:
            return Rejection(reason=RejectionReason.INVALID_CLAIMS, detail="Token issued in the future")

        if self.config.jws_issuer and claims.get("iss") != self.config.jws_issuer:
            return Rejection(reason=RejectionReason.INVALID_CLAIMS, detail="Unexpected issuer")

        if self.config.jws_audience:
            audience = claims.get("aud")
            if isinstance(audience, str):
                audiences = [audience]
            elif isinstance(audience, list):
                audiences = audience
            else:
                audiences = []
            if self.config.jws_audience not in audiences:
                return Rejection(reason=RejectionReason.INVALID_CLAIMS, detail="Unexpected audience")

        tenant_id = claims.get(self.config.jws_tenant_claim)
        if not isinstance(tenant_id, str) or not tenant_id:
            return Rejection(
                reason=RejectionReason.INVALID_CLAIMS,
                detail=f"Missing {self.config.jws_tenant_claim} claim",
            )

        if claimed_tenant_id and claimed_tenant_id != tenant_id:
            return Rejection(reason=RejectionReason.TENANT_MISMATCH, detail="Token tenant does not match caller")

        return tenant_id
