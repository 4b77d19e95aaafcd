"""
Outbound HTTP Client

One pooled client shared by key fetches, relays and proxy calls.
"""

from typing import Optional

import httpx

from ..config import GatewayConfig


def build_http_client(config: GatewayConfig, transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    """
    Build the shared client with a uniform explicit timeout.

    Args:
        config: Gateway configuration
        transport: Optional transport override (tests use httpx.MockTransport)
    """
    return httpx.Client(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        limits=httpx.Limits(
            max_connections=config.http_max_connections,
            max_keepalive_connections=config.http_max_keepalive_connections,
        ),
        transport=transport,
    )
