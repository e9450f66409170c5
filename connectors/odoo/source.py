"""Odoo invoice source.

Reads posted and draft customer invoices (account.move with move_type
out_invoice) and flattens each one, with its lines and product categories,
into the raw record shape the fetcher expects.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from connectors.http import RetryConfig
from connectors.odoo.client import OdooApiConfig, OdooRpcClient
from connectors.source_base import InvoiceSource, SourceConfig, register_source

logger = logging.getLogger(__name__)


ODOO_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
READ_CHUNK_SIZE = 200
DEFAULT_CATEGORY = "General"

INVOICE_FIELDS = ["id", "name", "partner_id", "invoice_date", "create_date", "invoice_line_ids"]
LINE_FIELDS = ["id", "move_id", "name", "product_id", "quantity", "price_unit", "display_type"]
PRODUCT_FIELDS = ["id", "categ_id"]

# Section and note rows carry no product
NON_PRODUCT_LINE_TYPES = ("line_section", "line_note")


def _many2one_id(value: Any) -> Optional[int]:
    if isinstance(value, (list, tuple)) and value:
        return value[0]
    return None


def _many2one_name(value: Any) -> str:
    if isinstance(value, (list, tuple)) and len(value) > 1:
        return str(value[1] or "").strip()
    return ""


def _leaf_category(path: str) -> str:
    """'All / Saleable / Banners' -> 'Banners'."""
    return path.split("/")[-1].strip() if path else ""


@register_source("odoo")
class OdooInvoiceSource(InvoiceSource):
    """Invoice source backed by Odoo JSON-RPC."""

    def __init__(self, config: SourceConfig, client: Optional[OdooRpcClient] = None):
        super().__init__(config)
        self.client = client or OdooRpcClient(OdooApiConfig(
            base_url=config.base_url,
            database=config.database or "",
            username=config.username or "",
            password=config.password or "",
            retry_config=RetryConfig(max_retries=config.max_retries),
            timeout_seconds=config.timeout_seconds,
        ))

    async def connect(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        await self.client.close()

    async def fetch_invoices(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        domain: List[Any] = [["move_type", "=", "out_invoice"]]
        if since is not None:
            stamp = since.astimezone(timezone.utc).strftime(ODOO_TIMESTAMP_FORMAT)
            domain.append(["create_date", ">=", stamp])

        invoices = await self.client.search_read(
            "account.move",
            domain,
            INVOICE_FIELDS,
            order="create_date asc, id asc",
        )
        logger.info(f"Odoo returned {len(invoices)} customer invoices")
        if not invoices:
            return []

        line_ids = [line_id for inv in invoices for line_id in (inv.get("invoice_line_ids") or [])]
        lines_by_id = await self._read_chunked("account.move.line", line_ids, LINE_FIELDS)

        product_ids = sorted({
            _many2one_id(line.get("product_id")) for line in lines_by_id.values()
        } - {None})
        products = await self._read_chunked("product.product", product_ids, PRODUCT_FIELDS)
        categories = {
            pid: _leaf_category(_many2one_name(product.get("categ_id")))
            for pid, product in products.items()
        }

        return [self._to_record(inv, lines_by_id, categories) for inv in invoices]

    async def _read_chunked(self, model: str, ids: List[int], fields: List[str]) -> Dict[int, Dict[str, Any]]:
        rows: Dict[int, Dict[str, Any]] = {}
        for start in range(0, len(ids), READ_CHUNK_SIZE):
            for row in await self.client.read(model, ids[start:start + READ_CHUNK_SIZE], fields):
                rows[row["id"]] = row
        return rows

    def _to_record(
        self,
        invoice: Dict[str, Any],
        lines_by_id: Dict[int, Dict[str, Any]],
        categories: Dict[int, str],
    ) -> Dict[str, Any]:
        order_lines = []
        for line_id in invoice.get("invoice_line_ids") or []:
            line = lines_by_id.get(line_id)
            if line is None or line.get("display_type") in NON_PRODUCT_LINE_TYPES:
                continue

            product_id = _many2one_id(line.get("product_id"))
            label = str(line.get("name") or "").strip()
            order_lines.append({
                "line_id": line_id,
                "product_name": label or _many2one_name(line.get("product_id")),
                "product_category": categories.get(product_id) or DEFAULT_CATEGORY,
                "qty_delivered": line.get("quantity") or 0,
                "price_unit": line.get("price_unit") or 0,
            })

        return {
            "id": invoice.get("id"),
            "name": invoice.get("name"),
            "partner_name": _many2one_name(invoice.get("partner_id")),
            "create_date": invoice.get("create_date"),
            "invoice_date": invoice.get("invoice_date"),
            "order_lines": order_lines,
        }
