"""
Shared-Secret Signing

HMAC-SHA256 over payload, timestamp and nonce, used both to verify inbound
requests and to sign outbound ones.
"""

import hashlib
import hmac
import time
import uuid
from typing import Optional


def compute_signature(payload: bytes, timestamp: str, nonce: str, key: str) -> str:
    """
    Compute the shared-secret signature.

    Args:
        payload: Raw request body
        timestamp: Unix timestamp in seconds, as sent on the wire
        nonce: Request nonce
        key: Tenant api key

    Returns:
        Lowercase hex HMAC-SHA256 digest
    """
    message = payload + timestamp.encode("utf-8") + nonce.encode("utf-8")
    return hmac.new(key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of two hex signatures."""
    return hmac.compare_digest(expected.encode("ascii"), provided.strip().lower().encode("ascii", "ignore"))


def new_nonce() -> str:
    """16 hex characters of randomness."""
    return uuid.uuid4().hex[:16]


def is_fresh(timestamp: int, window_seconds: int, now: Optional[float] = None) -> bool:
    """Check a timestamp lies within the freshness window either side of now."""
    current = int(time.time() if now is None else now)
    # Integer arithmetic; the wire timestamp is unbounded
    return abs(current - timestamp) <= window_seconds
