"""Abstract Invoice Source Interface.

This module defines the interface every external invoice source implements.
It is intentionally source-agnostic - no Odoo or REST specifics here.

Sources return raw invoice records as plain dicts. Normalization into
ExternalInvoice happens in the fetcher, so every source is held to the same
validation rules.

Raw record contract:
    {
        "id": 614,                         # required, any scalar
        "name": "INV/2025/00614",          # optional document number
        "partner_name": "Acme Agency",
        "create_date": "2025-03-01 08:15:00",
        "order_lines": [                   # list, or the same list JSON-encoded
            {
                "line_id": 9001,
                "product_name": "Blue Banner",
                "product_category": "Banners",
                "qty_delivered": 3,
                "price_unit": 12.5
            }
        ]
    }
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.config import SyncSettings


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class SourceConfig:
    """Configuration for an invoice source."""
    source_type: str                        # "odoo", "mirror"
    base_url: str

    # Authentication (source-specific)
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None

    # Behavior
    table: str = "invoices"
    timeout_seconds: int = 30
    max_retries: int = 3

    custom_settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> "SourceConfig":
        return cls(
            source_type=settings.source_type,
            base_url=settings.base_url,
            database=settings.database,
            username=settings.username,
            password=settings.password,
            api_key=settings.api_key,
            table=settings.mirror_table,
            timeout_seconds=settings.timeout_seconds,
        )


# =============================================================================
# Abstract Source Interface
# =============================================================================

class InvoiceSource(ABC):
    """Abstract base class for external invoice sources.

    Implementations:
    - connectors/odoo/source.py
    - connectors/mirror/source.py

    Usage:
        async with create_source(config) as source:
            records = await source.fetch_invoices(since=watermark)
    """

    def __init__(self, config: SourceConfig):
        self.config = config

    @property
    def source_name(self) -> str:
        """Name recorded as external_source on ledger rows."""
        return self.config.source_type.lower()

    @abstractmethod
    async def connect(self) -> None:
        """Open sessions and authenticate."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def fetch_invoices(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Fetch customer invoices created at or after since, oldest first.

        Args:
            since: Lower bound on creation time (None fetches everything)

        Returns:
            Raw invoice records (see module docstring)

        Raises:
            SourceApiError: If the source cannot be read
        """
        pass

    async def __aenter__(self) -> "InvoiceSource":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


# =============================================================================
# Source Factory
# =============================================================================

_source_registry: Dict[str, type] = {}


def register_source(source_type: str):
    """Decorator to register a source implementation."""
    def decorator(cls):
        _source_registry[source_type] = cls
        return cls
    return decorator


def create_source(config: SourceConfig) -> InvoiceSource:
    """Create a source instance from configuration.

    Raises:
        ValueError: If source_type is not registered
    """
    source_type = config.source_type.lower()

    if source_type not in _source_registry:
        available = list(_source_registry.keys())
        raise ValueError(
            f"Unknown source type: {source_type}. "
            f"Available: {available}"
        )

    return _source_registry[source_type](config)


def list_available_sources() -> List[str]:
    """List all registered source types."""
    return list(_source_registry.keys())
