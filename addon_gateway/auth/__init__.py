"""
Authentication Module

Inbound signature verification for the shared-secret and public-key schemes.
"""

from .keyset import PublicKeySet
from .models import (
    Rejection,
    RejectionReason,
    SignatureScheme,
    SignedEnvelope,
    VerificationResult,
    VerifiedIdentity,
)
from .verifier import SignatureVerifier

__all__ = [
    "PublicKeySet",
    "Rejection",
    "RejectionReason",
    "SignatureScheme",
    "SignatureVerifier",
    "SignedEnvelope",
    "VerificationResult",
    "VerifiedIdentity",
]
