"""
Gateway Errors

Exception types raised by the outbound side of the gateway. Inbound
verification never raises; it returns a typed Rejection instead.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""


class SignatureValidationError(GatewayError):
    """Signature is missing, malformed, tampered or stale."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class ConfigurationError(GatewayError):
    """Stored credentials or api key required for an operation are missing."""

    def __init__(self, message: str, tenant_id: Optional[str] = None):
        super().__init__(message)
        self.tenant_id = tenant_id


class DownstreamUnavailable(GatewayError):
    """A downstream service could not be reached."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target


class ProxyError(GatewayError):
    """Proxying failed for a reason other than connectivity."""
