"""Vendor API — typed client and payload parsers."""

from ravenview.api.client import RavenApiClient

__all__ = ["RavenApiClient"]
