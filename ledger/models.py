"""Ledger writer inputs and outputs."""

from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from core.models.canonical import ExternalInvoiceLine
from product_resolver.models import ProductResolution


class ResolvedLine(BaseModel):
    """An invoice line together with its product resolution."""
    line: ExternalInvoiceLine
    resolution: ProductResolution

    @property
    def is_writable(self) -> bool:
        return self.resolution.is_matched and self.line.is_stockable


class LedgerWriteResult(BaseModel):
    """Outcome of writing one invoice to the ledger.

    duplicates are rows whose idempotency key already existed (a replay or a
    concurrent run won the race); they are not errors.
    """
    external_invoice_id: str
    attempted: int = 0
    written: int = 0
    duplicates: int = 0
    failed: int = 0
    quantity_written: Decimal = Decimal("0")
    errors: List[str] = Field(default_factory=list)
