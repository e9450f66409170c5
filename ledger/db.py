"""Inventory Ledger Database Operations.

This module handles all database operations for the inventory ledger:
- Schema initialization (table, idempotency index, append-only triggers)
- Row inserts (plain and insert-if-absent for external invoice rows)
- Read queries (transactions, stock levels)

The ledger is append-only. Updates and deletes are rejected by triggers;
corrections are new rows.
"""

import sqlite3
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from core.config import DEFAULT_DB_PATH
from core.models.canonical import (
    InventoryTransaction,
    TransactionKind,
    format_timestamp,
    utc_now,
)


TRANSACTION_COLUMNS = (
    "product_id",
    "product_name",
    "color",
    "size",
    "category",
    "transaction_type",
    "quantity",
    "unit_price",
    "reference_id",
    "reference_name",
    "agency_id",
    "user_id",
    "external_source",
    "external_invoice_id",
    "external_product_name",
    "external_product_category",
    "notes",
    "transaction_date",
    "created_at",
)

_INSERT_SQL = (
    f"INSERT INTO inventory_transactions ({', '.join(TRANSACTION_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in TRANSACTION_COLUMNS)})"
)

# At most one external-invoice row per (source, invoice, product, variant)
_INSERT_IF_ABSENT_SQL = (
    _INSERT_SQL
    + " ON CONFLICT (external_source, external_invoice_id, product_id, color, size)"
    + " WHERE transaction_type = 'external_invoice' DO NOTHING"
)


def connect(db_path: Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a connection that waits on concurrent writers instead of failing."""
    return sqlite3.connect(db_path, timeout=30)


def init_ledger_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Initialize inventory ledger tables.

    Creates:
    - inventory_transactions: signed stock movements
    - uq_inventory_external_line: partial UNIQUE index enforcing idempotent
      external invoice imports
    - triggers rejecting UPDATE and DELETE

    Args:
        db_path: Path to SQLite database file
    """
    kinds = ", ".join(f"'{kind.value}'" for kind in TransactionKind)

    conn = connect(db_path)
    try:
        cursor = conn.cursor()

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS inventory_transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                product_id INTEGER NOT NULL,
                product_name TEXT NOT NULL,
                color TEXT NOT NULL DEFAULT 'Default',
                size TEXT NOT NULL DEFAULT 'Default',
                category TEXT NOT NULL DEFAULT '',
                transaction_type TEXT NOT NULL CHECK (transaction_type IN ({kinds})),
                quantity TEXT NOT NULL CHECK (CAST(quantity AS REAL) != 0),
                unit_price TEXT NOT NULL DEFAULT '0',
                reference_id TEXT,
                reference_name TEXT,
                agency_id TEXT,
                user_id TEXT,
                external_source TEXT,
                external_invoice_id TEXT,
                external_product_name TEXT,
                external_product_category TEXT,
                notes TEXT,
                transaction_date TEXT,
                created_at TEXT NOT NULL,
                CHECK (
                    transaction_type != 'external_invoice'
                    OR (external_source IS NOT NULL AND external_invoice_id IS NOT NULL)
                )
            )
        """)

        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS uq_inventory_external_line
            ON inventory_transactions(external_source, external_invoice_id, product_id, color, size)
            WHERE transaction_type = 'external_invoice'
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_inventory_variant
            ON inventory_transactions(product_id, color, size)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_inventory_agency
            ON inventory_transactions(agency_id)
        """)

        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS trg_inventory_no_update
            BEFORE UPDATE ON inventory_transactions
            BEGIN
                SELECT RAISE(ABORT, 'inventory_transactions is append-only');
            END
        """)
        cursor.execute("""
            CREATE TRIGGER IF NOT EXISTS trg_inventory_no_delete
            BEFORE DELETE ON inventory_transactions
            BEGIN
                SELECT RAISE(ABORT, 'inventory_transactions is append-only');
            END
        """)

        conn.commit()
    finally:
        conn.close()


# =============================================================================
# Inserts
# =============================================================================

def _row_values(txn: InventoryTransaction) -> tuple:
    created_at = txn.created_at or utc_now()
    return (
        txn.product_id,
        txn.product_name,
        txn.color,
        txn.size,
        txn.category,
        txn.transaction_type.value,
        str(txn.quantity),
        str(txn.unit_price),
        txn.reference_id,
        txn.reference_name,
        txn.agency_id,
        txn.user_id,
        txn.external_source,
        txn.external_invoice_id,
        txn.external_product_name,
        txn.external_product_category,
        txn.notes,
        format_timestamp(txn.transaction_date) if txn.transaction_date else None,
        format_timestamp(created_at),
    )


def insert_transaction(cursor: sqlite3.Cursor, txn: InventoryTransaction) -> Optional[int]:
    """Insert one row inside the caller's transaction.

    External invoice rows are inserted only if their idempotency key is not
    already present.

    Returns:
        New row id, or None if an identical external row already existed
    """
    if txn.transaction_type == TransactionKind.EXTERNAL_INVOICE:
        cursor.execute(_INSERT_IF_ABSENT_SQL, _row_values(txn))
    else:
        cursor.execute(_INSERT_SQL, _row_values(txn))

    if cursor.rowcount == 0:
        return None
    return cursor.lastrowid


# =============================================================================
# Queries
# =============================================================================

def get_transaction(transaction_id: int, db_path: Path = DEFAULT_DB_PATH) -> Optional[InventoryTransaction]:
    conn = connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        row = conn.execute(
            "SELECT * FROM inventory_transactions WHERE id = ?", (transaction_id,)
        ).fetchone()
        return _row_to_transaction(row) if row else None
    finally:
        conn.close()


def list_transactions(
    external_invoice_id: Optional[str] = None,
    external_source: Optional[str] = None,
    transaction_type: Optional[TransactionKind] = None,
    db_path: Path = DEFAULT_DB_PATH,
) -> List[InventoryTransaction]:
    """List ledger rows in insertion order, optionally filtered."""
    clauses = []
    params: list = []
    if external_invoice_id is not None:
        clauses.append("external_invoice_id = ?")
        params.append(external_invoice_id)
    if external_source is not None:
        clauses.append("external_source = ?")
        params.append(external_source)
    if transaction_type is not None:
        clauses.append("transaction_type = ?")
        params.append(TransactionKind(transaction_type).value)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    conn = connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute(
            f"SELECT * FROM inventory_transactions {where} ORDER BY id", params
        ).fetchall()
        return [_row_to_transaction(row) for row in rows]
    finally:
        conn.close()


def get_stock_level(
    product_id: int,
    color: str,
    size: str,
    agency_id: Optional[str] = None,
    db_path: Path = DEFAULT_DB_PATH,
) -> Decimal:
    """Sum of signed quantities for one variant (optionally one agency).

    Quantities are stored as decimal strings and summed here to avoid
    floating point drift.
    """
    sql = """
        SELECT quantity FROM inventory_transactions
        WHERE product_id = ? AND color = ? AND size = ?
    """
    params: list = [product_id, color, size]
    if agency_id is not None:
        sql += " AND agency_id = ?"
        params.append(agency_id)

    conn = connect(db_path)
    try:
        rows = conn.execute(sql, params).fetchall()
        return sum((Decimal(row[0]) for row in rows), Decimal("0"))
    finally:
        conn.close()


def _row_to_transaction(row: sqlite3.Row) -> InventoryTransaction:
    return InventoryTransaction(
        id=row["id"],
        product_id=row["product_id"],
        product_name=row["product_name"],
        color=row["color"],
        size=row["size"],
        category=row["category"],
        transaction_type=row["transaction_type"],
        quantity=row["quantity"],
        unit_price=row["unit_price"],
        reference_id=row["reference_id"],
        reference_name=row["reference_name"],
        agency_id=row["agency_id"],
        user_id=row["user_id"],
        external_source=row["external_source"],
        external_invoice_id=row["external_invoice_id"],
        external_product_name=row["external_product_name"],
        external_product_category=row["external_product_category"],
        notes=row["notes"],
        transaction_date=row["transaction_date"],
        created_at=row["created_at"],
    )
