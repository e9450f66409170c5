"""Incremental Fetcher.

Reads invoices from an InvoiceSource and normalizes them into
ExternalInvoice models.

Two outcomes are distinguished:
- the source cannot be read at all (transport failure, malformed top-level
  payload): FetchError, fatal for the run
- one record is unusable (missing id/date, unparseable lines): the record is
  rejected, reported, and the rest of the batch is kept
"""

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from connectors.http import SourceApiError
from connectors.source_base import InvoiceSource
from core.config import DEFAULT_DB_PATH
from core.errors import FetchError, InvoicePayloadError
from core.models.canonical import ExternalInvoice, SyncMode
from core.observability.logging import get_logger
from sync_state.mirror_cache import replace_mirror


logger = get_logger(__name__)


class RejectedInvoice(BaseModel):
    """A record that could not be normalized."""
    external_id: Optional[str] = None
    reason: str


class FetchResult(BaseModel):
    """Invoices to reconcile, oldest first, plus rejected records."""
    invoices: List[ExternalInvoice] = Field(default_factory=list)
    rejected: List[RejectedInvoice] = Field(default_factory=list)
    since: Optional[datetime] = None
    mode: SyncMode = SyncMode.INCREMENTAL
    mirrored_count: Optional[int] = None


def normalize_record(record: Any, source: str) -> ExternalInvoice:
    """Validate one raw record.

    Raises:
        InvoicePayloadError: If the record is not a usable invoice
    """
    if not isinstance(record, dict):
        raise InvoicePayloadError(f"Invoice record is {type(record).__name__}, expected an object")

    external_id = record.get("id")
    try:
        return ExternalInvoice(
            external_id=external_id,
            source=source,
            reference=record.get("name"),
            partner_name=record.get("partner_name"),
            created_at=record.get("create_date"),
            lines=record.get("order_lines"),
        )
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvoicePayloadError(
            f"Invoice {external_id}: {problems}",
            external_invoice_id=None if external_id is None else str(external_id),
        )


class IncrementalFetcher:
    """Fetches invoices created at or after the watermark.

    Example:
        fetcher = IncrementalFetcher(source, db_path=db_path)
        result = await fetcher.fetch(watermark)
        for invoice in result.invoices:
            ...
    """

    def __init__(self, source: InvoiceSource, db_path: Path = DEFAULT_DB_PATH):
        self.source = source
        self.db_path = db_path

    async def fetch(
        self,
        watermark: Optional[datetime],
        mode: SyncMode = SyncMode.INCREMENTAL,
    ) -> FetchResult:
        """Fetch and normalize invoices.

        Args:
            watermark: Lower bound on creation time; None reads everything
            mode: FULL_MIRROR ignores the watermark and refreshes the local mirror

        Raises:
            FetchError: If the source cannot be read
        """
        since = None if mode == SyncMode.FULL_MIRROR else watermark
        source_name = self.source.source_name

        try:
            records = await self.source.fetch_invoices(since)
        except (SourceApiError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Failed to fetch invoices from {source_name}: {e}", source=source_name) from e

        if not isinstance(records, list):
            raise FetchError(
                f"Malformed payload from {source_name}: expected a list, got {type(records).__name__}",
                source=source_name,
            )

        result = FetchResult(since=since, mode=mode)

        if mode == SyncMode.FULL_MIRROR:
            try:
                result.mirrored_count = replace_mirror(records, source_name, db_path=self.db_path)
            except sqlite3.Error as e:
                raise FetchError(f"Failed to refresh local invoice mirror: {e}", source=source_name) from e
            logger.info(f"Local mirror replaced with {result.mirrored_count} invoices")

        for record in records:
            try:
                invoice = normalize_record(record, source_name)
            except InvoicePayloadError as e:
                logger.warning(str(e))
                result.rejected.append(RejectedInvoice(external_id=e.external_invoice_id, reason=str(e)))
                continue

            # Sources filter too, but the boundary is enforced here
            if since is not None and invoice.created_at < since:
                continue
            result.invoices.append(invoice)

        result.invoices.sort(key=lambda inv: (inv.created_at, inv.external_id))

        logger.info(
            f"Fetched {len(result.invoices)} invoices from {source_name}",
            extra_fields={
                "since": since.isoformat() if since else None,
                "rejected": len(result.rejected),
                "mode": mode.value,
            },
        )
        return result
