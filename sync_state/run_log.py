"""Sync Run Logger.

Every run leaves immutable rows in external_sync_log: a "triggered" row when
the gateway accepts the request and a "success" or "error" row when the run
ends. Both rows share the run_id.

Failing to write the log must never fail the sync itself; storage errors
are logged and the call returns None.
"""

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.config import DEFAULT_DB_PATH
from core.models.canonical import SyncRunLog, SyncStatus, format_timestamp, utc_now
from core.observability.logging import get_logger


logger = get_logger(__name__)


def init_sync_log_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the external_sync_log table if it does not exist."""
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS external_sync_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id TEXT NOT NULL,
                sync_timestamp TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('triggered', 'success', 'error')),
                synced_count INTEGER NOT NULL DEFAULT 0,
                message TEXT NOT NULL DEFAULT '',
                details TEXT NOT NULL DEFAULT '{}'
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_sync_log_time
            ON external_sync_log(sync_timestamp)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_sync_log_run
            ON external_sync_log(run_id)
        """)
        conn.commit()
    finally:
        conn.close()


class SyncRunLogger:
    """Writes and reads sync run log rows."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = db_path

    def record(
        self,
        run_id: str,
        status: SyncStatus,
        synced_count: int = 0,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[SyncRunLog]:
        """Append a run log row.

        Returns:
            The stored row, or None if storage rejected it
        """
        entry = SyncRunLog(
            run_id=run_id,
            sync_timestamp=utc_now(),
            status=status,
            synced_count=synced_count,
            message=message,
            details=details or {},
        )
        try:
            conn = sqlite3.connect(self.db_path, timeout=30)
            try:
                with conn:
                    cursor = conn.execute(
                        """
                        INSERT INTO external_sync_log
                        (run_id, sync_timestamp, status, synced_count, message, details)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            entry.run_id,
                            format_timestamp(entry.sync_timestamp),
                            entry.status.value,
                            entry.synced_count,
                            entry.message,
                            json.dumps(entry.details, default=str),
                        ),
                    )
                entry.id = cursor.lastrowid
            finally:
                conn.close()
        except sqlite3.Error:
            logger.exception(f"Failed to write sync log entry ({status.value}) for run {run_id}")
            return None
        return entry

    def get_latest(self) -> Optional[SyncRunLog]:
        """Most recent row of any status."""
        history = self.get_history(limit=1)
        return history[0] if history else None

    def get_history(self, limit: int = 10) -> List[SyncRunLog]:
        """Most recent rows first."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(
                """
                SELECT * FROM external_sync_log
                ORDER BY sync_timestamp DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
            return [_row_to_log(row) for row in rows]
        finally:
            conn.close()

    def get_run(self, run_id: str) -> List[SyncRunLog]:
        """All rows for one run, oldest first."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(
                "SELECT * FROM external_sync_log WHERE run_id = ? ORDER BY id",
                (run_id,),
            ).fetchall()
            return [_row_to_log(row) for row in rows]
        finally:
            conn.close()


def _row_to_log(row: sqlite3.Row) -> SyncRunLog:
    return SyncRunLog(
        id=row["id"],
        run_id=row["run_id"],
        sync_timestamp=row["sync_timestamp"],
        status=row["status"],
        synced_count=row["synced_count"],
        message=row["message"],
        details=json.loads(row["details"] or "{}"),
    )
