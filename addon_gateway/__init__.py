"""
Add-on Gateway

Authenticated forwarding between a cloud platform and a downstream
integration service.
"""

__version__ = "0.1.0"
