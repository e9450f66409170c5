"""Odoo JSON-RPC Client.

Low-level client for Odoo's /jsonrpc endpoint. Authenticates through the
"common" service and runs model methods through "object.execute_kw".
"""

import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from connectors.http import (
    RetryConfig,
    SourceApiError,
    SourceAuthenticationError,
    request_json,
)

logger = logging.getLogger(__name__)


@dataclass
class OdooApiConfig:
    """Configuration for the Odoo JSON-RPC client."""
    base_url: str
    database: str
    username: str
    password: str
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    timeout_seconds: int = 30

    @property
    def rpc_url(self) -> str:
        return f"{self.base_url}/jsonrpc"


class OdooRpcClient:
    """JSON-RPC client for Odoo.

    Usage:
        client = OdooRpcClient(api_config)
        await client.connect()
        moves = await client.search_read("account.move", domain, ["id", "name"])
        await client.close()
    """

    def __init__(self, api_config: OdooApiConfig):
        self.api_config = api_config
        self.uid: Optional[int] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._request_ids = itertools.count(1)

    async def connect(self) -> int:
        """Open the HTTP session and authenticate.

        Returns:
            The Odoo user id

        Raises:
            SourceAuthenticationError: If Odoo rejects the credentials
        """
        if self._session is None:
            self._session = aiohttp.ClientSession()
        self.uid = await self.authenticate()
        logger.info(f"Authenticated with Odoo database '{self.api_config.database}' as uid {self.uid}")
        return self.uid

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def call(self, service: str, method: str, *args) -> Any:
        """Invoke a JSON-RPC service method and return its result."""
        if not self._session:
            raise SourceApiError("Not connected. Call connect() first.")

        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "params": {"service": service, "method": method, "args": list(args)},
            "id": next(self._request_ids),
        }
        response = await request_json(
            self._session,
            "POST",
            self.api_config.rpc_url,
            retry_config=self.api_config.retry_config,
            timeout_seconds=self.api_config.timeout_seconds,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            json_body=payload,
        )
        return parse_rpc_response(response)

    async def authenticate(self) -> int:
        uid = await self.call(
            "common",
            "authenticate",
            self.api_config.database,
            self.api_config.username,
            self.api_config.password,
            {},
        )
        if not uid:
            raise SourceAuthenticationError(
                f"Odoo rejected credentials for user '{self.api_config.username}'"
            )
        return uid

    async def execute_kw(
        self,
        model: str,
        method: str,
        args: List[Any],
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if self.uid is None:
            raise SourceApiError("Not authenticated. Call connect() first.")
        return await self.call(
            "object",
            "execute_kw",
            self.api_config.database,
            self.uid,
            self.api_config.password,
            model,
            method,
            args,
            kwargs or {},
        )

    async def search_read(
        self,
        model: str,
        domain: List[Any],
        fields: List[str],
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        kwargs: Dict[str, Any] = {"fields": fields}
        if order:
            kwargs["order"] = order
        if limit:
            kwargs["limit"] = limit
        result = await self.execute_kw(model, "search_read", [domain], kwargs)
        return _expect_list(result, model, "search_read")

    async def read(self, model: str, ids: List[int], fields: List[str]) -> List[Dict[str, Any]]:
        if not ids:
            return []
        result = await self.execute_kw(model, "read", [ids], {"fields": fields})
        return _expect_list(result, model, "read")


def parse_rpc_response(response: Any) -> Any:
    """Extract the result from a JSON-RPC envelope.

    Raises:
        SourceAuthenticationError: For Odoo AccessDenied errors
        SourceApiError: For any other RPC error or a malformed envelope
    """
    if not isinstance(response, dict):
        raise SourceApiError(f"Malformed JSON-RPC response: {type(response).__name__}")

    error = response.get("error")
    if error:
        data = error.get("data") or {}
        message = data.get("message") or error.get("message") or "unknown error"
        body = json.dumps(error, default=str)
        if "AccessDenied" in (data.get("name") or ""):
            raise SourceAuthenticationError(f"Odoo access denied: {message}", 403, body)
        raise SourceApiError(f"Odoo RPC error: {message}", error.get("code", 0) or 0, body)

    if "result" not in response:
        raise SourceApiError("Malformed JSON-RPC response: missing result")
    return response["result"]


def _expect_list(result: Any, model: str, method: str) -> List[Dict[str, Any]]:
    if not isinstance(result, list):
        raise SourceApiError(f"{model}.{method} returned {type(result).__name__}, expected a list")
    return result
