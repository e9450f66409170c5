"""Inventory Ledger - append-only stock movements.

Usage:
    from ledger import LedgerWriter, init_ledger_db

    init_ledger_db(db_path)
    writer = LedgerWriter(db_path=db_path, chunk_size=300)
    result = await writer.write_invoice(invoice, partner, resolved_lines)
"""

from ledger.models import ResolvedLine, LedgerWriteResult
from ledger.writer import LedgerWriter
from ledger.db import (
    init_ledger_db,
    get_transaction,
    list_transactions,
    get_stock_level,
)

__all__ = [
    # Models
    "ResolvedLine",
    "LedgerWriteResult",
    # Writer
    "LedgerWriter",
    # Database
    "init_ledger_db",
    "get_transaction",
    "list_transactions",
    "get_stock_level",
]
