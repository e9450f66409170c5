"""Watermark Store.

Persists the creation-time boundary of the last successful sync in the
app_settings key/value table. The value only ever moves forward: an advance
to an earlier timestamp than the stored one is a no-op, so an overlapping
older run cannot rewind progress made by a newer one.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from core.config import DEFAULT_DB_PATH
from core.models.canonical import format_timestamp, parse_timestamp, utc_now


WATERMARK_KEY = "last_external_sync"


def init_settings_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the app_settings table if it does not exist."""
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


class WatermarkStore:
    """Reads and advances the sync watermark."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH, key: str = WATERMARK_KEY):
        self.db_path = db_path
        self.key = key

    def get(self) -> Optional[datetime]:
        """Return the stored watermark, or None if no sync has completed."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        try:
            row = conn.execute(
                "SELECT value FROM app_settings WHERE key = ?", (self.key,)
            ).fetchone()
        finally:
            conn.close()
        return parse_timestamp(row[0]) if row else None

    def advance(self, value: datetime) -> datetime:
        """Move the watermark forward to value.

        Timestamps are stored in a fixed-width UTC format, so the forward-only
        comparison is done in SQL within the same statement as the write.

        Returns:
            The watermark in effect after the call
        """
        stamp = format_timestamp(value)
        conn = sqlite3.connect(self.db_path, timeout=30)
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO app_settings (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    WHERE excluded.value > app_settings.value
                    """,
                    (self.key, stamp, format_timestamp(utc_now())),
                )
        finally:
            conn.close()
        return self.get()
