"""Run one inventory sync from the command line.

Uses the same gateway as POST /sync/trigger, so the run is logged to
external_sync_log exactly like an HTTP trigger.
"""

import asyncio
import sys
from pathlib import Path
import logging

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.models.canonical import SyncMode
from core.observability import configure_logging
from sync.gateway import SyncGateway, TriggerRequest
from sync.schema import init_sync_database


logger = logging.getLogger(__name__)


async def run_sync(mode: SyncMode = SyncMode.INCREMENTAL, trigger_source: str = "cli") -> int:
    """Run a sync and print the result.

    Returns:
        Process exit code (0 on a completed run)
    """
    gateway = SyncGateway()
    init_sync_database(gateway.resolve_db_path())

    status_code, response = await gateway.trigger(
        TriggerRequest(trigger_source=trigger_source, mode=mode)
    )

    print("\n=== SYNC RESULT ===")
    for key, value in response.model_dump(mode="json").items():
        print(f"  {key}: {value}")
    print("===================\n")

    return 0 if status_code == 200 else 1


def main():
    """Entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run one inventory sync")
    parser.add_argument(
        "--full-mirror",
        action="store_true",
        help="Ignore the watermark and refresh the local invoice mirror"
    )
    parser.add_argument(
        "--trigger-source",
        default="cli",
        help="Value recorded as the run's trigger source (default: cli)"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines"
    )
    args = parser.parse_args()

    configure_logging(level=logging.INFO, json_format=args.json_logs)
    mode = SyncMode.FULL_MIRROR if args.full_mirror else SyncMode.INCREMENTAL
    return asyncio.run(run_sync(mode=mode, trigger_source=args.trigger_source))


if __name__ == "__main__":
    sys.exit(main())
