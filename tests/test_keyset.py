"""Tests for the public key set cache."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from addon_gateway.auth.keyset import PublicKeySet
from addon_gateway.errors import DownstreamUnavailable

URL = "https://platform.test/jwks"


class CountingKeySet:
    """MockTransport handler serving a mutable key set."""

    def __init__(self, keys=None, delay: float = 0.0):
        self.keys = keys if keys is not None else [{"kid": "k1", "kty": "RSA"}]
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return httpx.Response(200, json={"keys": self.keys})


def _key_set(handler, **kwargs) -> PublicKeySet:
    return PublicKeySet(httpx.Client(transport=httpx.MockTransport(handler)), URL, **kwargs)


class TestPublicKeySet:
    def test_known_key_is_cached(self):
        handler = CountingKeySet()
        key_set = _key_set(handler)

        assert key_set.get_key("k1")["kid"] == "k1"
        assert key_set.get_key("k1")["kid"] == "k1"
        assert handler.calls == 1

    def test_unknown_key_triggers_exactly_one_refresh(self):
        handler = CountingKeySet()
        key_set = _key_set(handler)
        key_set.get_key("k1")

        assert key_set.get_key("k2") is None
        assert handler.calls == 2

    def test_rotated_key_found_after_refresh(self):
        handler = CountingKeySet()
        key_set = _key_set(handler)
        key_set.get_key("k1")

        handler.keys = [{"kid": "k2", "kty": "RSA"}]

        assert key_set.get_key("k2")["kid"] == "k2"

    def test_ttl_expiry_forces_refetch(self):
        handler = CountingKeySet()
        now = [1000.0]
        key_set = _key_set(handler, ttl_seconds=60, clock=lambda: now[0])

        key_set.get_key("k1")
        now[0] += 30
        key_set.get_key("k1")
        assert handler.calls == 1

        now[0] += 31
        key_set.get_key("k1")
        assert handler.calls == 2

    def test_no_ttl_never_evicts(self):
        handler = CountingKeySet()
        now = [0.0]
        key_set = _key_set(handler, clock=lambda: now[0])

        key_set.get_key("k1")
        now[0] += 10 ** 9
        key_set.get_key("k1")

        assert handler.calls == 1

    def test_fetch_failure_raises_downstream_unavailable(self):
        key_set = _key_set(lambda request: httpx.Response(500))

        with pytest.raises(DownstreamUnavailable):
            key_set.get_key("k1")

    def test_invalid_document_raises_downstream_unavailable(self):
        key_set = _key_set(lambda request: httpx.Response(200, content=b"not json"))

        with pytest.raises(DownstreamUnavailable):
            key_set.get_key("k1")

    def test_entries_without_kid_are_ignored(self):
        key_set = _key_set(CountingKeySet(keys=[{"kty": "RSA"}, "junk", {"kid": "k1"}]))
        assert key_set.get_key("k1") == {"kid": "k1"}

    def test_concurrent_misses_share_one_refresh(self):
        handler = CountingKeySet(delay=0.05)
        key_set = _key_set(handler)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: key_set.get_key("k1"), range(8)))

        assert all(result["kid"] == "k1" for result in results)
        assert handler.calls == 1
