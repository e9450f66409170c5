"""Local mirror of external invoices.

A full-mirror sync replaces the whole table with the records just fetched.
The delete and the inserts run in one storage transaction, so readers see
either the previous mirror or the new one.
"""

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List

from core.config import DEFAULT_DB_PATH
from core.models.canonical import format_timestamp, utc_now


MIRROR_BATCH_SIZE = 1000


def init_mirror_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the external_invoice_mirror table if it does not exist."""
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS external_invoice_mirror (
                external_id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                create_date TEXT,
                partner_name TEXT,
                payload TEXT NOT NULL,
                mirrored_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


def replace_mirror(
    records: List[Dict[str, Any]],
    source: str,
    db_path: Path = DEFAULT_DB_PATH,
    batch_size: int = MIRROR_BATCH_SIZE,
) -> int:
    """Replace the mirror with records.

    Records that are not objects or have no id cannot be keyed and are left
    out; the fetcher rejects them on its own.

    Returns:
        Number of rows now in the mirror
    """
    mirrored_at = format_timestamp(utc_now())
    rows = {}
    for record in records:
        if not isinstance(record, dict):
            continue
        external_id = record.get("id")
        if external_id in (None, "", False):
            continue
        rows[str(external_id)] = (
            str(external_id),
            source,
            _text(record.get("create_date")),
            _text(record.get("partner_name")),
            json.dumps(record, default=str),
            mirrored_at,
        )
    values = list(rows.values())

    conn = sqlite3.connect(db_path, timeout=30)
    try:
        with conn:
            conn.execute("DELETE FROM external_invoice_mirror")
            for start in range(0, len(values), batch_size):
                conn.executemany(
                    """
                    INSERT INTO external_invoice_mirror
                    (external_id, source, create_date, partner_name, payload, mirrored_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    values[start:start + batch_size],
                )
    finally:
        conn.close()
    return len(values)


def count_mirror(db_path: Path = DEFAULT_DB_PATH) -> int:
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute("SELECT COUNT(*) FROM external_invoice_mirror").fetchone()[0]
    finally:
        conn.close()


def _text(value: Any):
    if value in (None, False):
        return None
    return str(value)
