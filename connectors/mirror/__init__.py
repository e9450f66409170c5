"""Mirrored event store connector (REST)."""

from connectors.mirror.client import MirrorApiConfig, MirrorApiClient
from connectors.mirror.source import MirrorInvoiceSource

__all__ = [
    "MirrorApiConfig",
    "MirrorApiClient",
    "MirrorInvoiceSource",
]
