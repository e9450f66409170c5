"""Mirrored event store REST client.

The event store exposes its tables through a PostgREST-style API:
    GET {base_url}/rest/v1/{table}?select=*&create_date=gte.<ts>&order=create_date.asc
Authentication uses the project API key in both the apikey header and a
bearer token.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from connectors.http import RetryConfig, SourceApiError, request_json

logger = logging.getLogger(__name__)


@dataclass
class MirrorApiConfig:
    """Configuration for the event store client."""
    base_url: str
    api_key: str
    page_size: int = 1000
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    timeout_seconds: int = 30

    def table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"


class MirrorApiClient:
    """HTTP client for the event store REST API.

    Usage:
        client = MirrorApiClient(api_config)
        await client.connect()
        rows = await client.select_all("invoices", {"order": "create_date.asc"})
    """

    def __init__(self, api_config: MirrorApiConfig):
        self.api_config = api_config
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    def _get_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_config.api_key,
            "Authorization": f"Bearer {self.api_config.api_key}",
            "Accept": "application/json",
        }

    async def select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """Run one query and return its rows."""
        if not self._session:
            raise SourceApiError("Not connected. Call connect() first.")

        rows = await request_json(
            self._session,
            "GET",
            self.api_config.table_url(table),
            retry_config=self.api_config.retry_config,
            timeout_seconds=self.api_config.timeout_seconds,
            headers=self._get_headers(),
            params=params,
        )
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise SourceApiError(f"Expected a JSON array from {table}, got {type(rows).__name__}")
        return rows

    async def select_all(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """Query with automatic limit/offset pagination."""
        page_size = self.api_config.page_size
        all_rows: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page_params = dict(params, limit=str(page_size), offset=str(offset))
            rows = await self.select(table, page_params)
            all_rows.extend(rows)

            if len(rows) < page_size:
                break
            offset += page_size

        return all_rows
