"""Product catalog store.

The catalog is owned by the product management side of the system; the
sync only reads it. init/add helpers exist for local setup and tests.
"""

import json
import sqlite3
from pathlib import Path
from typing import List, Optional

from core.config import DEFAULT_DB_PATH
from core.models.canonical import InternalProduct, format_timestamp, utc_now


def init_catalog_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the products table if it does not exist.

    colors and sizes are JSON arrays; the first entry of each is the
    representative variant used for imported stock.
    """
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS products (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT '',
                colors TEXT NOT NULL DEFAULT '[]',
                sizes TEXT NOT NULL DEFAULT '[]',
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


def add_product(
    name: str,
    category: str = "",
    colors: Optional[List[str]] = None,
    sizes: Optional[List[str]] = None,
    product_id: Optional[int] = None,
    db_path: Path = DEFAULT_DB_PATH,
) -> InternalProduct:
    """Insert a catalog product and return it with its id."""
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.execute(
            """
            INSERT INTO products (id, name, category, colors, sizes, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                product_id,
                name,
                category,
                json.dumps(colors or []),
                json.dumps(sizes or []),
                format_timestamp(utc_now()),
            ),
        )
        conn.commit()
        return InternalProduct(
            id=cursor.lastrowid,
            name=name,
            category=category,
            colors=colors or [],
            sizes=sizes or [],
        )
    finally:
        conn.close()


def list_active_products(db_path: Path = DEFAULT_DB_PATH) -> List[InternalProduct]:
    """Return the active catalog ordered by id."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute("""
            SELECT id, name, category, colors, sizes FROM products
            WHERE is_active = 1
            ORDER BY id
        """).fetchall()
        return [_row_to_product(row) for row in rows]
    finally:
        conn.close()


def _row_to_product(row: sqlite3.Row) -> InternalProduct:
    return InternalProduct(
        id=row["id"],
        name=row["name"],
        category=row["category"] or "",
        colors=_json_list(row["colors"]),
        sizes=_json_list(row["sizes"]),
    )


def _json_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    values = json.loads(raw)
    return [str(v) for v in values if v not in (None, "")]
