"""Database bootstrap for every table the sync pipeline touches."""

from pathlib import Path

from core.config import DEFAULT_DB_PATH
from ledger.db import init_ledger_db
from partner_resolver.db import init_profiles_db
from product_resolver.db import init_catalog_db
from sync_state.mirror_cache import init_mirror_db
from sync_state.run_log import init_sync_log_db
from sync_state.watermark import init_settings_db


def init_sync_database(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create all tables, indexes and triggers (idempotent)."""
    init_profiles_db(db_path)
    init_catalog_db(db_path)
    init_ledger_db(db_path)
    init_settings_db(db_path)
    init_sync_log_db(db_path)
    init_mirror_db(db_path)
