"""Mirrored event store invoice source."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from connectors.http import RetryConfig
from connectors.mirror.client import MirrorApiClient, MirrorApiConfig
from connectors.source_base import InvoiceSource, SourceConfig, register_source


# UTC with a Z suffix; a literal "+" in a query string reads as a space
MIRROR_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


@register_source("mirror")
class MirrorInvoiceSource(InvoiceSource):
    """Invoice source backed by the event store's invoices table.

    Rows already follow the raw record contract; order_lines is often stored
    as a JSON string and is decoded by the fetcher.
    """

    def __init__(self, config: SourceConfig, client: Optional[MirrorApiClient] = None):
        super().__init__(config)
        self.client = client or MirrorApiClient(MirrorApiConfig(
            base_url=config.base_url,
            api_key=config.api_key or "",
            retry_config=RetryConfig(max_retries=config.max_retries),
            timeout_seconds=config.timeout_seconds,
        ))

    async def connect(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        await self.client.close()

    async def fetch_invoices(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        params = {"select": "*", "order": "create_date.asc,id.asc"}
        if since is not None:
            params["create_date"] = f"gte.{since.astimezone(timezone.utc).strftime(MIRROR_TIMESTAMP_FORMAT)}"
        return await self.client.select_all(self.config.table, params)
