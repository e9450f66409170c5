"""Sync state - watermark, run log and the local invoice mirror.

Usage:
    from sync_state import WatermarkStore, SyncRunLogger

    watermark = WatermarkStore(db_path).get()
    SyncRunLogger(db_path).get_history(limit=10)
"""

from sync_state.watermark import WATERMARK_KEY, WatermarkStore, init_settings_db
from sync_state.run_log import SyncRunLogger, init_sync_log_db
from sync_state.mirror_cache import init_mirror_db, replace_mirror, count_mirror

__all__ = [
    "WATERMARK_KEY",
    "WatermarkStore",
    "init_settings_db",
    "SyncRunLogger",
    "init_sync_log_db",
    "init_mirror_db",
    "replace_mirror",
    "count_mirror",
]
