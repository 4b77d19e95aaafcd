"""
Proxy Forwarder

Forwards requests under the proxy route prefix to the downstream
integration service, passing signature headers through unchanged.
"""

import posixpath
from typing import Mapping, Optional

import httpx
from pydantic import BaseModel, Field
from structlog import get_logger

from ..auth.models import SIGNATURE_HEADERS
from ..config import GatewayConfig
from ..errors import DownstreamUnavailable, ProxyError

logger = get_logger()

DEFAULT_CONTENT_TYPE = "application/json"


class ProxyResponse(BaseModel):
    """Downstream response, relayed verbatim."""

    status_code: int
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE)
    body: bytes = Field(default=b"")


def build_target_url(config: GatewayConfig, path: str, query: Optional[str] = None) -> str:
    """
    Map a proxied path onto the downstream service.

    Paths without an extension get the configured default extension.
    """
    path = path.lstrip("/")
    if path and config.proxy_default_extension:
        _, extension = posixpath.splitext(path)
        if not extension:
            path = f"{path}{config.proxy_default_extension}"

    url = f"{config.proxy_target_root}{path}"
    if query:
        url = f"{url}?{query}"
    return url


def select_forward_headers(config: GatewayConfig, headers: Mapping[str, str], has_body: bool) -> dict[str, str]:
    """Pick the headers allowed through to the downstream service."""
    allowed = {name.lower() for name in SIGNATURE_HEADERS}
    prefix = config.proxy_forward_header_prefix.lower()

    forwarded = {}
    for name, value in headers.items():
        lowered = name.lower()
        if lowered in allowed or (prefix and lowered.startswith(prefix)):
            forwarded[name] = value
        elif lowered == "content-type" and has_body:
            forwarded[name] = value
    return forwarded


class ProxyForwarder:
    """Forwards a single request to the downstream service. No retry."""

    def __init__(self, http_client: httpx.Client, config: GatewayConfig):
        self.http_client = http_client
        self.config = config

    def forward(
        self,
        method: str,
        path: str,
        query: Optional[str],
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> ProxyResponse:
        """
        Forward a request.

        Args:
            method: HTTP method
            path: Path below the proxy route prefix
            query: Raw query string, preserved as-is
            headers: Inbound request headers
            body: Inbound request body

        Returns:
            Downstream status, content type and body

        Raises:
            DownstreamUnavailable: If the downstream service cannot be reached
            ProxyError: On any other transport failure
        """
        url = build_target_url(self.config, path, query)
        has_body = bool(body)
        forward_headers = select_forward_headers(self.config, headers, has_body)

        logger.info("proxy_request", method=method, url=url)

        try:
            response = self.http_client.request(
                method,
                url,
                headers=forward_headers,
                content=body if has_body else None,
            )
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.error("proxy_connection_failed", url=url, error=str(e))
            raise DownstreamUnavailable("Integration service unavailable", target=url) from e
        except httpx.HTTPError as e:
            logger.error("proxy_request_failed", url=url, error=str(e))
            raise ProxyError(f"Proxy error: {e}") from e

        logger.info("proxy_response", url=url, status_code=response.status_code)

        return ProxyResponse(
            status_code=response.status_code,
            content_type=response.headers.get("content-type", DEFAULT_CONTENT_TYPE),
            body=response.content,
        )

    def probe(self) -> ProxyResponse:
        """GET the downstream health path."""
        return self.forward("GET", self.config.proxy_health_path, None, {})
