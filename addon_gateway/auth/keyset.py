"""
Public Key Set

Process-wide cache of the issuer's public keys, indexed by key identifier.
"""

import threading
import time
from typing import Any, Callable, Optional

import httpx
from structlog import get_logger

from ..errors import DownstreamUnavailable

logger = get_logger()


class PublicKeySet:
    """
    Fetch-by-kid key cache.

    Reads are lock-free. An unknown key id triggers exactly one refresh of the
    whole key set before the lookup fails; concurrent refreshes are serialized
    and a thread that waited on another's refresh re-checks the cache first.
    Entries older than `ttl_seconds` are treated as unknown; with no TTL they
    are never evicted.
    """

    def __init__(
        self,
        http_client: httpx.Client,
        url: str,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http_client = http_client
        self.url = url
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._keys: dict[str, dict[str, Any]] = {}
        self._fetched_at: Optional[float] = None
        self._refresh_lock = threading.Lock()

    def _cached(self, kid: str) -> Optional[dict[str, Any]]:
        if self.ttl_seconds is not None and self._fetched_at is not None:
            if self._clock() - self._fetched_at > self.ttl_seconds:
                return None
        return self._keys.get(kid)

    def get_key(self, kid: str) -> Optional[dict[str, Any]]:
        """
        Get the JWK for a key id.

        Args:
            kid: Key identifier from the token header

        Returns:
            JWK dict if known after at most one refresh, None otherwise

        Raises:
            DownstreamUnavailable: If the key set endpoint cannot be fetched
        """
        key = self._cached(kid)
        if key is not None:
            return key

        with self._refresh_lock:
            key = self._cached(kid)
            if key is not None:
                return key
            self.refresh()

        key = self._keys.get(kid)
        if key is None:
            logger.warning("unknown_key_id", kid=kid, known=sorted(self._keys))
        return key

    def refresh(self) -> None:
        """Replace the cached key set with a fresh copy from the endpoint."""
        try:
            response = self.http_client.get(self.url)
            response.raise_for_status()
            document = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("key_set_fetch_failed", url=self.url, error=str(e))
            raise DownstreamUnavailable(f"Key set unavailable: {e}", target=self.url) from e

        keys = {}
        entries = document.get("keys", []) if isinstance(document, dict) else []
        for jwk in entries:
            kid = jwk.get("kid") if isinstance(jwk, dict) else None
            if kid:
                keys[kid] = jwk

        self._keys = keys
        self._fetched_at = self._clock()
        logger.info("key_set_refreshed", url=self.url, key_count=len(keys))
