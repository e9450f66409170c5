"""Invoice Source Connectors - pluggable external system integrations.

This package contains the abstract source interface and concrete
implementations for the systems invoices are read from.

Key Design Principle:
- The fetcher and orchestrator depend ONLY on the InvoiceSource interface
- Sources return raw records; normalization happens in sync.fetcher

To add a new source:
1. Create a new folder (e.g., shopify/)
2. Implement InvoiceSource
3. Register using @register_source decorator and import it below
"""

from connectors.source_base import (
    InvoiceSource,
    SourceConfig,
    create_source,
    register_source,
    list_available_sources,
)
from connectors.http import (
    RetryConfig,
    SourceApiError,
    SourceAuthenticationError,
    SourceNotFoundError,
    SourceRateLimitError,
)

# Importing the implementations registers them
from connectors.odoo import OdooInvoiceSource
from connectors.mirror import MirrorInvoiceSource

__all__ = [
    # Core interface
    "InvoiceSource",
    "SourceConfig",

    # Errors / transport
    "RetryConfig",
    "SourceApiError",
    "SourceAuthenticationError",
    "SourceNotFoundError",
    "SourceRateLimitError",

    # Implementations
    "OdooInvoiceSource",
    "MirrorInvoiceSource",

    # Factory
    "create_source",
    "register_source",
    "list_available_sources",
]
