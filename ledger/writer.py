"""Ledger Writer.

Turns resolved invoice lines into append-only inventory rows.

Idempotency is line-granular: every row carries the key
(external source, external invoice id, product id, color, size) and storage
refuses a second row with the same key. Replaying an invoice therefore
writes nothing, and retrying a partially written invoice fills in exactly
the missing rows.
"""

import sqlite3
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, List, Optional

from core.config import DEFAULT_DB_PATH, DEFAULT_LEDGER_CHUNK_SIZE
from core.errors import PersistenceError
from core.models.canonical import (
    ExternalInvoice,
    InventoryTransaction,
    PartnerIdentity,
    TransactionKind,
    utc_now,
)
from core.observability.logging import get_logger
from ledger.db import connect, get_transaction, insert_transaction
from ledger.models import LedgerWriteResult, ResolvedLine


logger = get_logger(__name__)


def chunked(items: list, size: int) -> List[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class LedgerWriter:
    """Appends inventory transactions.

    Example:
        writer = LedgerWriter(db_path=db_path)
        result = await writer.write_invoice(invoice, partner, resolved_lines)
        print(result.written, result.duplicates)
    """

    def __init__(
        self,
        db_path: Path = DEFAULT_DB_PATH,
        chunk_size: int = DEFAULT_LEDGER_CHUNK_SIZE,
        import_sign: Decimal = Decimal("1"),
        clock: Callable = utc_now,
    ):
        """Initialize the writer.

        Args:
            db_path: Path to SQLite database
            chunk_size: Rows per storage transaction
            import_sign: +1 records delivered quantities as stock in, -1 as stock out
            clock: Returns the current UTC time (row created_at)
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if import_sign not in (Decimal("1"), Decimal("-1")):
            raise ValueError("import_sign must be +1 or -1")
        self.db_path = db_path
        self.chunk_size = chunk_size
        self.import_sign = import_sign
        self._clock = clock

    # -------------------------------------------------------------------------
    # External invoices
    # -------------------------------------------------------------------------

    def build_entries(
        self,
        invoice: ExternalInvoice,
        partner: PartnerIdentity,
        lines: List[ResolvedLine],
    ) -> List[InventoryTransaction]:
        """Build one row per idempotency key.

        Lines that resolve to the same product variant within an invoice are
        merged and their quantities summed, so no delivered quantity is lost
        to the uniqueness constraint.
        """
        grouped: Dict[tuple, List[ResolvedLine]] = {}
        for resolved in lines:
            if not resolved.is_writable:
                continue
            r = resolved.resolution
            key = (r.product.id, r.color, r.size)
            grouped.setdefault(key, []).append(resolved)

        now = self._clock()
        entries = []
        for (product_id, color, size), group in grouped.items():
            first = group[0]
            product = first.resolution.product
            quantity = sum((g.line.qty_delivered for g in group), Decimal("0"))
            score = min(g.resolution.confidence_score for g in group)

            notes = (
                f"Imported from {invoice.source} invoice {invoice.display_reference}. "
                f"Match score: {score:.0f}%"
            )
            if len(group) > 1:
                notes += f". Merged {len(group)} invoice lines"

            entries.append(InventoryTransaction(
                product_id=product_id,
                product_name=product.name,
                color=color,
                size=size,
                category=product.category,
                transaction_type=TransactionKind.EXTERNAL_INVOICE,
                quantity=quantity * self.import_sign,
                unit_price=first.line.price_unit,
                reference_id=invoice.external_id,
                reference_name=invoice.display_reference,
                agency_id=partner.agency_id,
                user_id=partner.user_id,
                external_source=invoice.source,
                external_invoice_id=invoice.external_id,
                external_product_name=first.line.product_name,
                external_product_category=first.line.product_category,
                notes=notes,
                transaction_date=invoice.created_at,
                created_at=now,
            ))
        return entries

    async def write_invoice(
        self,
        invoice: ExternalInvoice,
        partner: PartnerIdentity,
        lines: List[ResolvedLine],
    ) -> LedgerWriteResult:
        """Write an invoice's resolved lines.

        Rows are inserted in chunks, each chunk in its own storage
        transaction. A rejected chunk is reported and the remaining chunks
        are still attempted.
        """
        entries = self.build_entries(invoice, partner, lines)
        result = LedgerWriteResult(external_invoice_id=invoice.external_id, attempted=len(entries))

        for index, chunk in enumerate(chunked(entries, self.chunk_size)):
            try:
                inserted = self._insert_chunk(chunk)
            except sqlite3.Error as e:
                error = PersistenceError(
                    f"Invoice {invoice.display_reference}: chunk {index + 1} "
                    f"({len(chunk)} rows) rejected: {e}",
                    external_invoice_id=invoice.external_id,
                    chunk_index=index,
                )
                logger.error(str(error), extra_fields={"chunk_index": index, "rows": len(chunk)})
                result.failed += len(chunk)
                result.errors.append(str(error))
                continue

            for entry, row_id in zip(chunk, inserted):
                if row_id is None:
                    result.duplicates += 1
                else:
                    result.written += 1
                    result.quantity_written += entry.quantity

        if result.duplicates:
            logger.info(
                f"Invoice {invoice.display_reference}: {result.duplicates} rows already in ledger",
                extra_fields={"duplicates": result.duplicates},
            )
        return result

    def _insert_chunk(self, chunk: List[InventoryTransaction]) -> List[Optional[int]]:
        conn = connect(self.db_path)
        try:
            with conn:
                cursor = conn.cursor()
                return [insert_transaction(cursor, entry) for entry in chunk]
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Other movements
    # -------------------------------------------------------------------------

    def append(self, txn: InventoryTransaction) -> InventoryTransaction:
        """Append a single row of any kind.

        Raises:
            ValueError: If the quantity is zero
            PersistenceError: If storage rejects the row
        """
        if txn.quantity == 0:
            raise ValueError("Ledger rows must move a non-zero quantity")

        txn = txn.model_copy(update={"created_at": txn.created_at or self._clock()})
        try:
            row_ids = self._insert_chunk([txn])
        except sqlite3.Error as e:
            raise PersistenceError(f"Ledger rejected {txn.transaction_type.value} row: {e}") from e

        return txn.model_copy(update={"id": row_ids[0]})

    def append_offsetting(
        self,
        transaction_id: int,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> InventoryTransaction:
        """Correct a row by appending its negation as a manual adjustment.

        Raises:
            LookupError: If the transaction does not exist
        """
        original = get_transaction(transaction_id, db_path=self.db_path)
        if original is None:
            raise LookupError(f"Inventory transaction {transaction_id} not found")

        correction = InventoryTransaction(
            product_id=original.product_id,
            product_name=original.product_name,
            color=original.color,
            size=original.size,
            category=original.category,
            transaction_type=TransactionKind.MANUAL_ADJUSTMENT,
            quantity=-original.quantity,
            unit_price=original.unit_price,
            reference_id=str(original.id),
            reference_name=original.reference_name,
            agency_id=original.agency_id,
            user_id=user_id or original.user_id,
            notes=notes or f"Reversal of transaction {original.id}",
            transaction_date=self._clock(),
        )
        return self.append(correction)
