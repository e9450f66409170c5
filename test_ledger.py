"""
Ledger Writer Tests

Validates:
1. Replaying an invoice writes zero rows (storage-level idempotency)
2. A partially written invoice is completed by a retry
3. Zero quantities never reach the ledger
4. The ledger rejects updates and deletes
5. Corrections are appended as offsetting rows
"""

import asyncio
import sqlite3
from decimal import Decimal
from unittest.mock import patch

import pytest

from core.errors import PersistenceError
from core.models.canonical import (
    ExternalInvoice,
    ExternalInvoiceLine,
    InternalProduct,
    InventoryTransaction,
    PartnerIdentity,
    TransactionKind,
)
from ledger import LedgerWriter, ResolvedLine, get_stock_level, list_transactions
from ledger.db import connect, insert_transaction
from product_resolver.models import ProductQuery, ProductResolution


PARTNER = PartnerIdentity(user_id="user-1", name="Acme Agency", agency_id="agency-1")
BLUE_BANNER = InternalProduct(id=1, name="Blue Banner", category="Banners", colors=["Blue"], sizes=["Large"])
FLYER = InternalProduct(id=2, name="Flyer A5", category="Print")


def make_invoice(external_id: str = "614", lines=None) -> ExternalInvoice:
    return ExternalInvoice(
        external_id=external_id,
        source="odoo",
        reference=f"INV/{external_id}",
        partner_name="Acme Agency",
        created_at="2025-03-01T08:15:00Z",
        lines=lines or [],
    )


def resolved(product: InternalProduct, qty, name: str = None, score: str = "80") -> ResolvedLine:
    line = ExternalInvoiceLine(
        product_name=name or product.name,
        product_category=product.category,
        qty_delivered=qty,
        price_unit="12.50",
    )
    resolution = ProductResolution(
        is_matched=True,
        product=product,
        color=product.colors[0] if product.colors else "Default",
        size=product.sizes[0] if product.sizes else "Default",
        confidence_score=Decimal(score),
        query=ProductQuery.from_line(line),
    )
    return ResolvedLine(line=line, resolution=resolution)


class TestIdempotentWrites:
    """Test line-granular idempotency."""

    def test_first_write_appends_rows(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        result = asyncio.run(writer.write_invoice(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3)]))

        assert result.written == 1
        assert result.duplicates == 0
        assert result.quantity_written == Decimal("3")

        rows = list_transactions(external_invoice_id="614", db_path=temp_db)
        assert len(rows) == 1
        row = rows[0]
        assert row.transaction_type == TransactionKind.EXTERNAL_INVOICE
        assert row.quantity == Decimal("3")
        assert row.color == "Blue"
        assert row.size == "Large"
        assert row.agency_id == "agency-1"
        assert row.user_id == "user-1"
        assert row.external_source == "odoo"
        assert row.notes == "Imported from odoo invoice INV/614. Match score: 80%"

    def test_replay_writes_nothing(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        lines = [resolved(BLUE_BANNER, 3), resolved(FLYER, 10)]

        asyncio.run(writer.write_invoice(make_invoice(), PARTNER, lines))
        replay = asyncio.run(writer.write_invoice(make_invoice(), PARTNER, lines))

        assert replay.written == 0
        assert replay.duplicates == 2
        assert len(list_transactions(db_path=temp_db)) == 2

    def test_retry_completes_partial_invoice(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        asyncio.run(writer.write_invoice(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3)]))

        retry = asyncio.run(writer.write_invoice(
            make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3), resolved(FLYER, 10)]
        ))

        assert retry.written == 1
        assert retry.duplicates == 1
        assert {r.product_id for r in list_transactions(db_path=temp_db)} == {1, 2}

    def test_same_product_on_other_invoice_is_not_duplicate(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        asyncio.run(writer.write_invoice(make_invoice("614"), PARTNER, [resolved(BLUE_BANNER, 3)]))
        result = asyncio.run(writer.write_invoice(make_invoice("615"), PARTNER, [resolved(BLUE_BANNER, 2)]))

        assert result.written == 1
        assert get_stock_level(1, "Blue", "Large", db_path=temp_db) == Decimal("5")

    def test_concurrent_insert_is_ignored_by_storage(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        entry = writer.build_entries(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3)])[0]

        # Two writers that both saw "nothing written yet"
        first = connect(temp_db)
        second = connect(temp_db)
        try:
            with first:
                assert insert_transaction(first.cursor(), entry) is not None
            with second:
                assert insert_transaction(second.cursor(), entry) is None
        finally:
            first.close()
            second.close()

        assert len(list_transactions(db_path=temp_db)) == 1

    def test_duplicate_lines_are_merged(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        lines = [
            resolved(BLUE_BANNER, 3, name="Blue Banner", score="80"),
            resolved(BLUE_BANNER, 2, name="Blue Banner XL", score="50"),
        ]

        result = asyncio.run(writer.write_invoice(make_invoice(), PARTNER, lines))

        assert result.written == 1
        row = list_transactions(db_path=temp_db)[0]
        assert row.quantity == Decimal("5")
        assert "Match score: 50%" in row.notes
        assert "Merged 2 invoice lines" in row.notes


class TestQuantityRules:
    """Test sign and zero-quantity handling."""

    def test_zero_quantity_lines_are_not_written(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        result = asyncio.run(writer.write_invoice(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 0)]))

        assert result.attempted == 0
        assert list_transactions(db_path=temp_db) == []

    @pytest.mark.parametrize("qty", [-2, "-0.5"])
    def test_negative_quantity_lines_are_not_written(self, temp_db, qty):
        writer = LedgerWriter(db_path=temp_db)
        result = asyncio.run(writer.write_invoice(
            make_invoice(), PARTNER, [resolved(BLUE_BANNER, qty), resolved(FLYER, 4)]
        ))

        assert result.attempted == 1
        assert result.written == 1
        assert [r.product_id for r in list_transactions(db_path=temp_db)] == [2]
        assert get_stock_level(1, "Blue", "Large", db_path=temp_db) == Decimal("0")

    def test_outbound_import_sign(self, temp_db):
        writer = LedgerWriter(db_path=temp_db, import_sign=Decimal("-1"))
        asyncio.run(writer.write_invoice(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3)]))

        assert get_stock_level(1, "Blue", "Large", db_path=temp_db) == Decimal("-3")

    def test_storage_rejects_zero_quantity(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        entry = writer.build_entries(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3)])[0]
        zero = entry.model_copy(update={"quantity": Decimal("0")})

        conn = connect(temp_db)
        try:
            with pytest.raises(sqlite3.IntegrityError):
                with conn:
                    insert_transaction(conn.cursor(), zero)
        finally:
            conn.close()

    def test_append_rejects_zero_quantity(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        with pytest.raises(ValueError):
            writer.append(InventoryTransaction(
                product_id=1,
                product_name="Blue Banner",
                transaction_type=TransactionKind.MANUAL_ADJUSTMENT,
                quantity=0,
            ))

    def test_invalid_writer_settings(self, temp_db):
        with pytest.raises(ValueError):
            LedgerWriter(db_path=temp_db, chunk_size=0)
        with pytest.raises(ValueError):
            LedgerWriter(db_path=temp_db, import_sign=Decimal("2"))


class TestChunking:
    """Test chunked inserts and per-chunk failures."""

    def test_rows_are_inserted_in_chunks(self, temp_db):
        products = [InternalProduct(id=i, name=f"Product {i}") for i in range(1, 8)]
        writer = LedgerWriter(db_path=temp_db, chunk_size=3)

        with patch.object(writer, "_insert_chunk", wraps=writer._insert_chunk) as spy:
            result = asyncio.run(writer.write_invoice(
                make_invoice(), PARTNER, [resolved(p, 1) for p in products]
            ))

        assert spy.call_count == 3
        assert result.written == 7

    def test_failed_chunk_is_reported_and_others_continue(self, temp_db):
        products = [InternalProduct(id=i, name=f"Product {i}") for i in range(1, 5)]
        writer = LedgerWriter(db_path=temp_db, chunk_size=2)
        original = writer._insert_chunk
        calls = []

        def flaky(chunk):
            calls.append(len(chunk))
            if len(calls) == 1:
                raise sqlite3.OperationalError("database is locked")
            return original(chunk)

        with patch.object(writer, "_insert_chunk", side_effect=flaky):
            result = asyncio.run(writer.write_invoice(
                make_invoice(), PARTNER, [resolved(p, 1) for p in products]
            ))

        assert result.failed == 2
        assert result.written == 2
        assert "database is locked" in result.errors[0]
        assert len(list_transactions(db_path=temp_db)) == 2

        # Retrying fills in the rejected chunk only
        retry = asyncio.run(LedgerWriter(db_path=temp_db, chunk_size=2).write_invoice(
            make_invoice(), PARTNER, [resolved(p, 1) for p in products]
        ))
        assert retry.written == 2
        assert retry.duplicates == 2


class TestAppendOnly:
    """Test that history cannot be rewritten."""

    def test_update_and_delete_are_rejected(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        asyncio.run(writer.write_invoice(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3)]))

        conn = connect(temp_db)
        try:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("UPDATE inventory_transactions SET quantity = '1'")
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute("DELETE FROM inventory_transactions")
        finally:
            conn.close()

    def test_offsetting_entry_reverses_stock(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        asyncio.run(writer.write_invoice(make_invoice(), PARTNER, [resolved(BLUE_BANNER, 3)]))
        original = list_transactions(db_path=temp_db)[0]

        correction = writer.append_offsetting(original.id, notes="Wrong agency")

        assert correction.id is not None
        assert correction.transaction_type == TransactionKind.MANUAL_ADJUSTMENT
        assert correction.quantity == Decimal("-3")
        assert correction.reference_id == str(original.id)
        assert get_stock_level(1, "Blue", "Large", agency_id="agency-1", db_path=temp_db) == Decimal("0")
        assert len(list_transactions(db_path=temp_db)) == 2

    def test_offsetting_unknown_row(self, temp_db):
        with pytest.raises(LookupError):
            LedgerWriter(db_path=temp_db).append_offsetting(999)

    def test_append_reports_storage_errors(self, temp_db):
        writer = LedgerWriter(db_path=temp_db)
        txn = InventoryTransaction(
            product_id=1,
            product_name="Blue Banner",
            transaction_type=TransactionKind.SALE,
            quantity=-1,
        )
        with patch.object(writer, "_insert_chunk", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(PersistenceError):
                writer.append(txn)
