"""
Proxy Module

Passthrough forwarding to the downstream integration service.
"""

from .forwarder import ProxyForwarder, ProxyResponse, build_target_url

__all__ = ["ProxyForwarder", "ProxyResponse", "build_target_url"]
