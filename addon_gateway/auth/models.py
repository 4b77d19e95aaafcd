"""
Authentication Models

Signed request envelope and the typed results of verifying it.
"""

from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field

# Shared-secret scheme headers
SIGNATURE_HEADER = "X-Signature"
TIMESTAMP_HEADER = "X-Timestamp"
NONCE_HEADER = "X-Nonce"

# Public-key scheme header
TOKEN_HEADER = "X-LC-Signature"

SIGNATURE_HEADERS = (TOKEN_HEADER, SIGNATURE_HEADER, TIMESTAMP_HEADER, NONCE_HEADER)


class SignatureScheme(str, Enum):
    """Supported inbound signature schemes."""

    SHARED_SECRET = "shared_secret"
    PUBLIC_KEY = "public_key"


class RejectionReason(str, Enum):
    """Why an envelope failed verification."""

    MISSING_SIGNATURE = "missing_signature"
    UNKNOWN_TENANT = "unknown_tenant"
    API_KEY_NOT_CONFIGURED = "api_key_not_configured"
    INVALID_TIMESTAMP = "invalid_timestamp"
    STALE_TIMESTAMP = "stale_timestamp"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED_TOKEN = "malformed_token"
    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    UNKNOWN_KEY_ID = "unknown_key_id"
    KEY_SET_UNAVAILABLE = "key_set_unavailable"
    INVALID_CLAIMS = "invalid_claims"
    TOKEN_EXPIRED = "token_expired"
    TENANT_MISMATCH = "tenant_mismatch"
    SCHEME_NOT_ALLOWED = "scheme_not_allowed"


# Rejections caused by missing local configuration rather than a bad request
CONFIGURATION_REASONS = frozenset({RejectionReason.API_KEY_NOT_CONFIGURED})


class SignedEnvelope(BaseModel):
    """Raw payload plus whichever signature material the request carried."""

    payload: bytes = Field(default=b"")
    signature: Optional[str] = Field(default=None)
    timestamp: Optional[str] = Field(default=None)
    nonce: Optional[str] = Field(default=None)
    token: Optional[str] = Field(default=None)

    @classmethod
    def from_headers(cls, payload: bytes, headers: Mapping[str, str]) -> "SignedEnvelope":
        """
        Build an envelope from request headers.

        Header lookup is case-insensitive.
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        return cls(
            payload=payload,
            signature=lowered.get(SIGNATURE_HEADER.lower()) or None,
            timestamp=lowered.get(TIMESTAMP_HEADER.lower()) or None,
            nonce=lowered.get(NONCE_HEADER.lower()) or None,
            token=lowered.get(TOKEN_HEADER.lower()) or None,
        )

    @property
    def scheme(self) -> Optional[SignatureScheme]:
        """Scheme selected by header shape; a compact token takes precedence."""
        if self.token:
            return SignatureScheme.PUBLIC_KEY
        if self.signature or self.timestamp or self.nonce:
            return SignatureScheme.SHARED_SECRET
        return None


class VerifiedIdentity(BaseModel):
    """A tenant identity established by a successful verification."""

    tenant_id: str
    scheme: SignatureScheme
    token: Optional[str] = Field(default=None, description="Validated compact token, public-key scheme only")
    claims: dict[str, Any] = Field(default_factory=dict)


class Rejection(BaseModel):
    """A failed verification. Callers must never proceed past one."""

    reason: RejectionReason
    detail: str = Field(default="")

    @property
    def is_configuration_error(self) -> bool:
        return self.reason in CONFIGURATION_REASONS


VerificationResult = Union[VerifiedIdentity, Rejection]
