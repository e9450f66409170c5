"""Partner profile store.

The profiles table is owned by the user management side of the system; the
sync only reads it. init/add helpers exist for local setup and tests.
"""

import sqlite3
from pathlib import Path
from typing import List

from core.config import DEFAULT_DB_PATH
from core.models.canonical import PartnerIdentity, format_timestamp, utc_now


def init_profiles_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the profiles table if it does not exist."""
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                agency_id TEXT,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_profiles_agency
            ON profiles(agency_id)
        """)
        conn.commit()
    finally:
        conn.close()


def add_profile(
    user_id: str,
    name: str,
    agency_id: str = None,
    db_path: Path = DEFAULT_DB_PATH,
) -> None:
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(
            "INSERT INTO profiles (id, name, agency_id, created_at) VALUES (?, ?, ?, ?)",
            (user_id, name, agency_id, format_timestamp(utc_now())),
        )
        conn.commit()
    finally:
        conn.close()


def list_agency_profiles(db_path: Path = DEFAULT_DB_PATH) -> List[PartnerIdentity]:
    """Return every profile that belongs to an agency, ordered by id."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute("""
            SELECT id, name, agency_id FROM profiles
            WHERE agency_id IS NOT NULL AND agency_id != ''
            ORDER BY id
        """).fetchall()
        return [
            PartnerIdentity(user_id=row["id"], name=row["name"], agency_id=row["agency_id"])
            for row in rows
        ]
    finally:
        conn.close()
